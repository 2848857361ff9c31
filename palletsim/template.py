"""A minimal pallet that stores one number and can demonstrate errors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from palletsim.frame import DispatchError, Origin, System, ensure_signed

U32_MAX = 2**32 - 1

_SOMETHING = "Something"


class NoneValue(DispatchError):
    """No value has been stored yet."""


class StorageOverflow(DispatchError):
    """Incrementing the stored value would overflow."""


@dataclass(frozen=True)
class SomethingStored:
    """A value was stored by an account."""

    something: int
    who: Any


def _check_u32(value: int) -> None:
    if not 0 <= value <= U32_MAX:
        raise ValueError(f"{value} does not fit in an unsigned 32-bit integer")


class TemplatePallet:
    """Stores an optional unsigned 32-bit value."""

    def __init__(self, system: System) -> None:
        self.system = system
        self._storage: dict[str, int] = {}

    def something(self) -> int | None:
        """The stored value, or None if nothing has been stored."""
        return self._storage.get(_SOMETHING)

    def do_something(self, origin: Origin, something: int) -> None:
        """Store ``something`` and announce who stored it."""
        _check_u32(something)
        with self.system.transactional(self._storage) as storage:
            who = ensure_signed(origin)
            storage[_SOMETHING] = something
            self.system.deposit_event(SomethingStored(something, who))

    def cause_error(self, origin: Origin) -> None:
        """Increment the stored value, failing if it is unset or at its maximum."""
        with self.system.transactional(self._storage) as storage:
            ensure_signed(origin)
            old = storage.get(_SOMETHING)
            if old is None:
                raise NoneValue("no value stored")
            if old == U32_MAX:
                raise StorageOverflow("stored value would overflow")
            storage[_SOMETHING] = old + 1


def benchmark_do_something(pallet: TemplatePallet, s: int, caller: Any) -> int:
    """Run ``do_something`` for a benchmark component ``s`` in 0..=100 and verify it."""
    if not 0 <= s <= 100:
        raise ValueError("benchmark component s must lie in 0..=100")
    pallet.do_something(Origin.signed(caller), s)
    stored = pallet.something()
    if stored != s:
        raise RuntimeError(f"benchmark verification failed: stored {stored}, expected {s}")
    return stored