# billsplit/errors.py
from typing import Any, Dict


class SplitError(Exception):
    code = "split_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str = "", **extra: Any):
        super().__init__(message or self.code)
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.code, "detail": str(self)}
        for key, value in self.extra.items():
            body[key] = str(value) if value is not None and not isinstance(value, (int, bool, str)) else value
        return body


class AllocationMismatch(SplitError):
    code = "allocation_mismatch"
    status_code = 422


class OverClaim(SplitError):
    code = "over_claim"
    status_code = 409


class InvalidLineItem(SplitError):
    code = "invalid_line_item"
    status_code = 422


class InvalidClaim(SplitError):
    code = "invalid_claim"
    status_code = 422


class PermissionDenied(SplitError):
    code = "permission_denied"
    status_code = 403


class NotFound(SplitError):
    code = "not_found"
    status_code = 404


class Conflict(SplitError):
    code = "conflict"
    status_code = 409


class SplitNotReady(SplitError):
    code = "split_not_ready"
    status_code = 409


class StoreUnavailable(SplitError):
    # the only failure callers should retry automatically
    code = "store_unavailable"
    status_code = 503
    retryable = True


class InvalidSplit(SplitError):
    code = "invalid_split"
    status_code = 422
