from datetime import date

from fastapi import APIRouter, Depends, Query

from cleancar.api.deps import get_current_user
from cleancar.api.errors import to_http_exception
from cleancar.api.v1.schemas import (
    AppointmentSchema,
    AvailabilityResponseSchema,
    BookAppointmentRequestSchema,
    BookAppointmentResponseSchema,
    CancelAppointmentRequestSchema,
    CancelAppointmentResponseSchema,
    PriceBreakdownSchema,
    QuoteResponseSchema,
    SlotSchema,
)
from cleancar.application.exceptions import CleanCarError
from cleancar.application.use_cases.appointments import AppointmentUseCase
from cleancar.domain.entities.appointment import ServiceType
from cleancar.domain.entities.user import User
from cleancar.wiring.dependencies import get_appointment_use_case

router = APIRouter(prefix="/appointments")


@router.post("", response_model=BookAppointmentResponseSchema, status_code=201)
def book_appointment(
    req: BookAppointmentRequestSchema,
    user: User = Depends(get_current_user),
    uc: AppointmentUseCase = Depends(get_appointment_use_case),
):
    try:
        result = uc.book(
            user_id=user.id,
            service_type=req.service_type,
            day=req.appointment_date,
            location=req.location,
            notes=req.notes,
        )
    except CleanCarError as e:
        raise to_http_exception(e)

    return BookAppointmentResponseSchema(
        appointment=AppointmentSchema.from_entity(result.appointment),
        price_breakdown=PriceBreakdownSchema.from_entity(result.breakdown),
        points_remaining=result.points_remaining,
    )


@router.get("", response_model=list[AppointmentSchema])
def list_appointments(
    user: User = Depends(get_current_user),
    uc: AppointmentUseCase = Depends(get_appointment_use_case),
):
    return [AppointmentSchema.from_entity(a) for a in uc.list_for_user(user.id)]


@router.get("/quote", response_model=QuoteResponseSchema)
def quote(
    service_type: ServiceType = Query(...),
    appointment_date: date = Query(...),
    uc: AppointmentUseCase = Depends(get_appointment_use_case),
):
    result = uc.quote(service_type, appointment_date)
    return QuoteResponseSchema(
        service_type=service_type,
        appointment_date=appointment_date,
        price_breakdown=PriceBreakdownSchema.from_entity(result.breakdown),
        next_available_slot=SlotSchema.from_entity(result.slot) if result.slot else None,
    )


@router.get("/availability", response_model=AvailabilityResponseSchema)
def availability(
    appointment_date: date = Query(...),
    uc: AppointmentUseCase = Depends(get_appointment_use_case),
):
    slots = uc.available_slots(appointment_date)
    return AvailabilityResponseSchema(
        appointment_date=appointment_date,
        slots=[SlotSchema.from_entity(s) for s in slots],
    )


@router.put("/{appointment_id}/cancel", response_model=CancelAppointmentResponseSchema)
def cancel_appointment(
    appointment_id: str,
    req: CancelAppointmentRequestSchema | None = None,
    user: User = Depends(get_current_user),
    uc: AppointmentUseCase = Depends(get_appointment_use_case),
):
    try:
        result = uc.cancel(appointment_id, requestor_id=user.id, reason=req.reason if req else None)
    except CleanCarError as e:
        raise to_http_exception(e)

    return CancelAppointmentResponseSchema(
        appointment_id=result.appointment.id,
        status=result.appointment.status,
        refunded_points=result.refunded_points,
    )
