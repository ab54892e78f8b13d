from django.core.management.base import BaseCommand

from reputation.suspensions import SuspensionService


class Command(BaseCommand):
    help = "Deactivate warning/temporary suspensions whose end date has passed."

    def handle(self, *args, **options):
        n = SuspensionService().expire()
        self.stdout.write(self.style.SUCCESS(f"Deactivated {n} ended suspensions."))
