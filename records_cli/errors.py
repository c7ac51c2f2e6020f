from typing import Dict, Optional


class RecordsError(Exception):
    """Base class for every failure raised by the records domain."""


class ValidationError(RecordsError):
    """Malformed or missing input. ``errors`` maps field names to messages."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        details = "; ".join(f"{field}: {message}" for field, message in errors.items())
        super().__init__(f"Validation failed - {details}")


class NotFound(RecordsError):
    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key!r} not found")


class AlreadyResolved(RecordsError):
    """A correction request was resolved by someone else first."""

    def __init__(self, request_id: str, status: Optional[str] = None):
        self.request_id = request_id
        self.status = status
        suffix = f" (status: {status})" if status else ""
        super().__init__(
            f"Correction request {request_id!r} is already resolved{suffix}, refresh and try again"
        )


class PreconditionFailed(RecordsError):
    """Programming error, e.g. querying records without an active academic year."""


class StoreUnavailable(RecordsError):
    pass


class IdentityUnavailable(RecordsError):
    pass


class PermissionDenied(RecordsError):
    pass
