from __future__ import annotations

import logging

from fastapi import HTTPException

from cleancar.application.exceptions import (
    AlreadyTerminalError,
    CleanCarError,
    ExternalDependencyError,
    InsufficientBalanceError,
    NotFoundError,
    PolicyReason,
    PolicyViolation,
    PurchaseInProgressError,
    SlotConflictError,
)

logger = logging.getLogger(__name__)


def to_http_exception(error: CleanCarError) -> HTTPException:
    if isinstance(error, PolicyViolation):
        status_code = 409 if error.reason == PolicyReason.no_slot_available else 400
        return HTTPException(
            status_code=status_code,
            detail={"code": error.reason.value, "message": error.message, **error.details},
        )
    if isinstance(error, InsufficientBalanceError):
        return HTTPException(
            status_code=400,
            detail={
                "code": PolicyReason.insufficient_points.value,
                "message": "Insufficient points",
                "available": error.balance,
                "required": error.amount,
            },
        )
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail={"code": "not_found", "message": str(error)})
    if isinstance(error, AlreadyTerminalError):
        return HTTPException(
            status_code=409,
            detail={"code": "already_terminal", "message": str(error), "status": error.status},
        )
    if isinstance(error, SlotConflictError):
        return HTTPException(
            status_code=409,
            detail={"code": "slot_conflict", "message": "The slot was just taken, please try again"},
        )
    if isinstance(error, PurchaseInProgressError):
        return HTTPException(
            status_code=202,
            detail={"code": "in_progress", "message": "Purchase is being processed, please wait", "status": error.status},
        )
    if isinstance(error, ExternalDependencyError):
        return HTTPException(status_code=502, detail={"code": "payment_provider_error", "message": str(error)})

    logger.critical("Unhandled core error", extra={"error": str(error)})
    return HTTPException(status_code=500, detail={"code": "internal_error"})
