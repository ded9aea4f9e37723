class DangerZoneError(Exception):
    """Base error carrying a stable kind the web layer can expose as-is."""

    kind = "internal"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        error = {"kind": self.kind, "message": self.message}
        if self.retryable:
            error["retryable"] = True
        return error


class InvalidArgument(DangerZoneError):
    kind = "invalid_argument"
    status_code = 400


class NotFound(DangerZoneError):
    kind = "not_found"
    status_code = 404


class PermissionDenied(DangerZoneError):
    kind = "permission_denied"
    status_code = 403


class StorageFailure(DangerZoneError):
    kind = "storage_failure"
    status_code = 503
    retryable = True
