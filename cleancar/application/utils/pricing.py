from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from cleancar.application.utils.calendar import DateType, classify_date
from cleancar.domain.entities.appointment import ServiceType
from cleancar.domain.entities.pack import Pack

BASE_PRICES: dict[ServiceType, int] = {
    ServiceType.basic: 1000,
    ServiceType.deluxe: 1400,
}

MULTIPLIERS: dict[DateType, Decimal] = {
    DateType.weekday: Decimal("1.0"),
    DateType.weekend: Decimal("1.5"),
    DateType.holiday: Decimal("2.0"),
}

SURCHARGE_LABELS: dict[DateType, str] = {
    DateType.weekday: "",
    DateType.weekend: "Weekend Surcharge (+50%)",
    DateType.holiday: "Holiday Surcharge (+100%)",
}


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: int
    surcharge: int
    surcharge_label: str
    final_price: int
    date_type: DateType


def _round(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_price(service_type: ServiceType, day: date) -> int:
    base = BASE_PRICES[ServiceType(service_type)]
    return _round(Decimal(base) * MULTIPLIERS[classify_date(day)])


def price_breakdown(service_type: ServiceType, day: date) -> PriceBreakdown:
    base = BASE_PRICES[ServiceType(service_type)]
    date_type = classify_date(day)
    final = calculate_price(service_type, day)
    return PriceBreakdown(
        base_price=base,
        surcharge=final - base,
        surcharge_label=SURCHARGE_LABELS[date_type],
        final_price=final,
        date_type=date_type,
    )


def pack_total_value(pack: Pack) -> int:
    """Points plus the weekday price of every free service in the pack."""
    service_value = sum(BASE_PRICES[credit.service_type] * credit.quantity for credit in pack.free_services)
    return pack.total_points + service_value
