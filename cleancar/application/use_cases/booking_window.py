from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from cleancar.application.exceptions import PolicyReason, PolicyViolation
from cleancar.application.ports.appointment_repository import AppointmentRepositoryPort
from cleancar.application.utils.calendar import TIME_SLOTS, add_months, iter_dates


@dataclass(frozen=True)
class WindowDecision:
    allowed: bool
    horizon: date
    extended: bool = False
    reason: PolicyReason | None = None
    message: str | None = None


class BookingWindowPolicy:
    """
    Rolling booking horizon.

    Dates up to `window_months` ahead are always bookable. Beyond that, the
    horizon extends to `extended_window_months` only while every date of the
    near-term window is fully booked.
    """

    def __init__(
        self,
        appointments: AppointmentRepositoryPort,
        window_months: int = 3,
        extended_window_months: int = 6,
    ) -> None:
        self._appointments = appointments
        self._window_months = window_months
        self._extended_window_months = extended_window_months

    def evaluate(self, requested: date, today: date) -> WindowDecision:
        horizon = add_months(today, self._window_months)

        if requested < today:
            return WindowDecision(
                allowed=False,
                horizon=horizon,
                reason=PolicyReason.date_in_past,
                message="Cannot book appointments in the past",
            )

        if requested <= horizon:
            return WindowDecision(allowed=True, horizon=horizon)

        total_dates = (horizon - today).days + 1
        fully_booked = self.fully_booked_dates(today, horizon)
        if len(fully_booked) < total_dates:
            return WindowDecision(
                allowed=False,
                horizon=horizon,
                reason=PolicyReason.outside_booking_window,
                message=f"Please choose a date within the next {self._window_months} months",
            )

        extended_horizon = add_months(today, self._extended_window_months)
        if requested <= extended_horizon:
            return WindowDecision(allowed=True, horizon=extended_horizon, extended=True)
        return WindowDecision(
            allowed=False,
            horizon=extended_horizon,
            extended=True,
            reason=PolicyReason.outside_extended_window,
            message=(
                f"Booking window extended to {self._extended_window_months} months due to high demand. "
                f"Please choose a date within {self._extended_window_months} months."
            ),
        )

    def check(self, requested: date, today: date) -> WindowDecision:
        decision = self.evaluate(requested, today)
        if not decision.allowed:
            raise PolicyViolation(
                decision.reason,
                decision.message,
                {"requested_date": requested.isoformat(), "horizon": decision.horizon.isoformat()},
            )
        return decision

    def fully_booked_dates(self, start: date, end: date) -> list[date]:
        """Dates in [start, end] whose active appointments fill every slot."""
        counts = self._appointments.active_counts_by_date(start, end)
        return [day for day in iter_dates(start, end) if counts.get(day, 0) >= len(TIME_SLOTS)]
