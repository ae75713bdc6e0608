"""
Typed outcomes for business-rule violations.

Services return a ``Rejected`` instead of raising when a request breaks an
expected rule (duplicate invitation, batch already contributed...). Routers
translate it into an HTTP error with ``raise_for``.
"""
import enum
from dataclasses import dataclass

from fastapi import HTTPException


class Reason(str, enum.Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    INVALID_STATE = "invalid_state"


_STATUS_CODES = {
    Reason.NOT_FOUND: 404,
    Reason.CONFLICT: 409,
    Reason.FORBIDDEN: 403,
    Reason.INVALID_STATE: 409,
}


@dataclass(frozen=True)
class Rejected:
    reason: Reason
    detail: str

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.reason]


class ForbiddenError(Exception):
    """Raised when the target exists but belongs to another household."""


def not_found(detail: str) -> Rejected:
    return Rejected(Reason.NOT_FOUND, detail)


def conflict(detail: str) -> Rejected:
    return Rejected(Reason.CONFLICT, detail)


def forbidden(detail: str) -> Rejected:
    return Rejected(Reason.FORBIDDEN, detail)


def invalid_state(detail: str) -> Rejected:
    return Rejected(Reason.INVALID_STATE, detail)


def raise_for(result):
    """Return ``result`` unchanged unless it is a Rejected, which becomes an HTTPException."""
    if isinstance(result, Rejected):
        raise HTTPException(
            status_code=result.status_code,
            detail={"reason": result.reason.value, "message": result.detail},
        )
    return result
