from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, PermissionDenied, ValidationError

__all__ = ["DependencyError", "NotFound", "PermissionDenied", "ValidationError", "wrap_dependency_error"]


class DependencyError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "A dependency failed."
    default_code = "dependency_error"


def wrap_dependency_error(prefix: str, exc: Exception) -> DependencyError:
    # 원본 메시지를 보존하고 작업별 prefix만 붙인다
    return DependencyError(f"{prefix}: {exc}")
