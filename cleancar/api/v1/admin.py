from fastapi import APIRouter, Depends, HTTPException

from cleancar.api.deps import require_admin
from cleancar.api.errors import to_http_exception
from cleancar.api.v1.schemas import (
    AdjustPointsRequestSchema,
    AppointmentSchema,
    CancelAppointmentRequestSchema,
    CancelAppointmentResponseSchema,
    PointsBalanceResponseSchema,
    UpdateStatusRequestSchema,
)
from cleancar.application.exceptions import CleanCarError
from cleancar.application.use_cases.appointments import AppointmentUseCase
from cleancar.application.use_cases.points_ledger import PointsLedger
from cleancar.domain.entities.appointment import AppointmentStatus
from cleancar.domain.entities.user import User
from cleancar.wiring.dependencies import get_appointment_use_case, get_points_ledger

router = APIRouter(prefix="/admin")


@router.put("/users/{user_id}/points", response_model=PointsBalanceResponseSchema)
def adjust_points(
    user_id: str,
    req: AdjustPointsRequestSchema,
    admin: User = Depends(require_admin),
    ledger: PointsLedger = Depends(get_points_ledger),
):
    try:
        balance = ledger.adjust(user_id, req.operation, req.points, reason=req.reason)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CleanCarError as e:
        raise to_http_exception(e)

    return PointsBalanceResponseSchema(user_id=user_id, points_balance=balance)


@router.put("/appointments/{appointment_id}/cancel", response_model=CancelAppointmentResponseSchema)
def admin_cancel_appointment(
    appointment_id: str,
    req: CancelAppointmentRequestSchema | None = None,
    admin: User = Depends(require_admin),
    uc: AppointmentUseCase = Depends(get_appointment_use_case),
):
    try:
        result = uc.cancel(appointment_id, requestor_id=admin.id, reason=req.reason if req else None)
    except CleanCarError as e:
        raise to_http_exception(e)

    return CancelAppointmentResponseSchema(
        appointment_id=result.appointment.id,
        status=result.appointment.status,
        refunded_points=result.refunded_points,
    )


@router.put("/appointments/{appointment_id}/status", response_model=AppointmentSchema)
def update_appointment_status(
    appointment_id: str,
    req: UpdateStatusRequestSchema,
    admin: User = Depends(require_admin),
    uc: AppointmentUseCase = Depends(get_appointment_use_case),
):
    try:
        if req.status == AppointmentStatus.cancelled:
            appointment = uc.cancel(appointment_id, requestor_id=admin.id, reason=req.reason).appointment
        else:
            appointment = uc.update_status(appointment_id, req.status)
    except CleanCarError as e:
        raise to_http_exception(e)

    return AppointmentSchema.from_entity(appointment)
