from django.core.management.base import BaseCommand

from appeals.services import AppealWorkflow


class Command(BaseCommand):
    help = "Expire pending/under-review appeals older than SAFETY_APPEAL_REVIEW_DAYS."

    def handle(self, *args, **options):
        n = AppealWorkflow().expire_stale()
        self.stdout.write(self.style.SUCCESS(f"Expired {n} stale appeals."))
