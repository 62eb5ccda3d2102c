from __future__ import annotations

from dataclasses import dataclass

from cleancar.domain.entities.appointment import ServiceType


@dataclass(frozen=True)
class ServiceCredit:
    service_type: ServiceType
    quantity: int


@dataclass(frozen=True)
class Pack:
    id: str
    name: str
    description: str
    price: int  # in whole currency units
    points_included: int
    bonus_points: int = 0
    free_services: tuple[ServiceCredit, ...] = ()
    active: bool = True

    @property
    def total_points(self) -> int:
        return self.points_included + self.bonus_points
