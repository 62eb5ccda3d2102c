from __future__ import annotations

from abc import ABC, abstractmethod

from cleancar.domain.entities.pack import Pack


class PackRepositoryPort(ABC):
    @abstractmethod
    def get_pack(self, pack_id: str) -> Pack | None:
        raise NotImplementedError

    @abstractmethod
    def list_active_packs(self) -> list[Pack]:
        """Active packs ordered by price, cheapest first."""
        raise NotImplementedError

    @abstractmethod
    def add_pack(self, pack: Pack) -> Pack:
        raise NotImplementedError
