from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from cleancar.application.use_cases.points_ledger import LedgerOperation
from cleancar.application.use_cases.purchases import PackOffer
from cleancar.application.utils.calendar import DateType
from cleancar.application.utils.pricing import PriceBreakdown
from cleancar.domain.entities.appointment import Appointment, AppointmentStatus, ServiceType
from cleancar.domain.entities.pack import ServiceCredit
from cleancar.domain.entities.purchase import Purchase, PurchaseStatus
from cleancar.domain.entities.slot import SlotAssignment


class SlotSchema(BaseModel):
    slot: str
    start_time: datetime
    end_time: datetime

    @staticmethod
    def from_entity(assignment: SlotAssignment) -> "SlotSchema":
        return SlotSchema(slot=assignment.slot, start_time=assignment.start_time, end_time=assignment.end_time)


class PriceBreakdownSchema(BaseModel):
    base_price: int
    surcharge: int
    surcharge_label: str
    final_price: int
    date_type: DateType

    @staticmethod
    def from_entity(breakdown: PriceBreakdown) -> "PriceBreakdownSchema":
        return PriceBreakdownSchema(
            base_price=breakdown.base_price,
            surcharge=breakdown.surcharge,
            surcharge_label=breakdown.surcharge_label,
            final_price=breakdown.final_price,
            date_type=breakdown.date_type,
        )


class AppointmentSchema(BaseModel):
    id: str
    service_type: ServiceType
    appointment_date: date
    time_slot: str
    start_time: datetime
    end_time: datetime
    location: str
    status: AppointmentStatus
    price: int
    notes: str | None = None
    created_at: datetime | None = None

    @staticmethod
    def from_entity(appointment: Appointment) -> "AppointmentSchema":
        return AppointmentSchema(
            id=appointment.id,
            service_type=appointment.service_type,
            appointment_date=appointment.date,
            time_slot=appointment.slot,
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            location=appointment.location,
            status=appointment.status,
            price=appointment.price,
            notes=appointment.notes,
            created_at=appointment.created_at,
        )


class BookAppointmentRequestSchema(BaseModel):
    service_type: ServiceType
    appointment_date: date
    location: str = Field(min_length=1, max_length=200)
    notes: str | None = Field(default=None, max_length=500)


class BookAppointmentResponseSchema(BaseModel):
    appointment: AppointmentSchema
    price_breakdown: PriceBreakdownSchema
    points_remaining: int


class CancelAppointmentRequestSchema(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class CancelAppointmentResponseSchema(BaseModel):
    appointment_id: str
    status: AppointmentStatus
    refunded_points: int


class UpdateStatusRequestSchema(BaseModel):
    status: AppointmentStatus
    reason: str | None = Field(default=None, max_length=500)


class QuoteResponseSchema(BaseModel):
    service_type: ServiceType
    appointment_date: date
    price_breakdown: PriceBreakdownSchema
    next_available_slot: SlotSchema | None = None


class AvailabilityResponseSchema(BaseModel):
    appointment_date: date
    slots: list[SlotSchema]


class ServiceCreditSchema(BaseModel):
    service_type: ServiceType
    quantity: int

    @staticmethod
    def from_entities(credits: tuple[ServiceCredit, ...]) -> list["ServiceCreditSchema"]:
        return [ServiceCreditSchema(service_type=c.service_type, quantity=c.quantity) for c in credits]


class PackSchema(BaseModel):
    id: str
    name: str
    description: str
    price: int
    points_included: int
    bonus_points: int
    total_points: int
    free_services: list[ServiceCreditSchema] = Field(default_factory=list)
    total_value: int
    savings: int


class PackListResponseSchema(BaseModel):
    packs: list[PackSchema]


class InitiatePurchaseRequestSchema(BaseModel):
    pack_id: str = Field(min_length=1)


class InitiatePurchaseResponseSchema(BaseModel):
    payment_intent_id: str
    client_secret: str | None
    purchase_id: str
    status: PurchaseStatus
    amount: float  # in whole currency units
    currency: str


class ConfirmPurchaseRequestSchema(BaseModel):
    payment_intent_id: str = Field(min_length=1)


class ConfirmPurchaseResponseSchema(BaseModel):
    status: PurchaseStatus
    points_awarded: int
    already_processed: bool
    points_balance: int


class PurchaseSchema(BaseModel):
    id: str
    pack_id: str
    amount: float
    currency: str
    status: PurchaseStatus
    points_awarded: int
    bonus_points_awarded: int
    service_credits_awarded: list[ServiceCreditSchema] = Field(default_factory=list)
    created_at: datetime | None = None

    @staticmethod
    def from_entity(purchase: Purchase) -> "PurchaseSchema":
        return PurchaseSchema(
            id=purchase.id,
            pack_id=purchase.pack_id,
            amount=purchase.amount / 100,
            currency=purchase.currency,
            status=purchase.status,
            points_awarded=purchase.points_awarded,
            bonus_points_awarded=purchase.bonus_points_awarded,
            service_credits_awarded=ServiceCreditSchema.from_entities(purchase.service_credits_awarded),
            created_at=purchase.created_at,
        )


class PurchaseListResponseSchema(BaseModel):
    purchases: list[PurchaseSchema]


class PointsBalanceResponseSchema(BaseModel):
    user_id: str
    points_balance: int


class AdjustPointsRequestSchema(BaseModel):
    operation: LedgerOperation
    points: int = Field(ge=0)
    reason: str | None = Field(default=None, max_length=500)


def pack_schema_from_offer(offer: PackOffer) -> PackSchema:
    pack = offer.pack
    return PackSchema(
        id=pack.id,
        name=pack.name,
        description=pack.description,
        price=pack.price,
        points_included=pack.points_included,
        bonus_points=pack.bonus_points,
        total_points=offer.total_points,
        free_services=ServiceCreditSchema.from_entities(pack.free_services),
        total_value=offer.total_value,
        savings=offer.savings,
    )
