from __future__ import annotations

# Barber directory.
#
# The queue only needs three things about a barber: the salon name (used in
# messages) and the two switches that decide whether walk-ins may join.

import threading
from dataclasses import dataclass, replace

from .errors import BarberNotFound


@dataclass(frozen=True)
class BarberProfile:
    barber_id: str
    salon_name: str
    walk_in_enabled: bool = True
    is_available: bool = True

    @property
    def accepts_walk_ins(self) -> bool:
        return self.walk_in_enabled and self.is_available


class BarberDirectory:
    """In-memory barber profiles (thread-safe)."""

    def __init__(self, profiles: list[BarberProfile] | None = None) -> None:
        self._lock = threading.Lock()
        self._profiles: dict[str, BarberProfile] = {}
        for p in profiles or []:
            self._profiles[p.barber_id] = p

    def register(self, profile: BarberProfile) -> None:
        """Create/overwrite a barber profile."""
        with self._lock:
            self._profiles[profile.barber_id] = profile

    def get(self, barber_id: str) -> BarberProfile:
        with self._lock:
            profile = self._profiles.get(barber_id)
        if profile is None:
            raise BarberNotFound(f"barber {barber_id} not found")
        return profile

    def set_walk_in_enabled(self, barber_id: str, enabled: bool) -> BarberProfile:
        return self._change(barber_id, walk_in_enabled=enabled)

    def set_available(self, barber_id: str, available: bool) -> BarberProfile:
        return self._change(barber_id, is_available=available)

    def _change(self, barber_id: str, **fields: bool) -> BarberProfile:
        with self._lock:
            profile = self._profiles.get(barber_id)
            if profile is None:
                raise BarberNotFound(f"barber {barber_id} not found")
            profile = replace(profile, **fields)
            self._profiles[barber_id] = profile
            return profile

    def all(self) -> list[BarberProfile]:
        with self._lock:
            return sorted(self._profiles.values(), key=lambda p: p.barber_id)
