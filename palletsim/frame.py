"""Core runtime machinery: origins, dispatch errors and the system pallet."""

from __future__ import annotations

import copy
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any


class DispatchError(Exception):
    """Raised when a dispatchable call fails."""


class BadOrigin(DispatchError):
    """Raised when a call is made from an origin it does not accept."""


@dataclass(frozen=True)
class Origin:
    """The origin of a dispatched call: a signing account, or nobody."""

    who: Any = None
    is_signed: bool = False

    @classmethod
    def signed(cls, who: Any) -> Origin:
        """An origin signed by the account ``who``."""
        return cls(who=who, is_signed=True)

    @classmethod
    def none(cls) -> Origin:
        """An unsigned origin."""
        return cls()


def ensure_signed(origin: Origin) -> Any:
    """Return the signing account of ``origin`` or raise ``BadOrigin``."""
    if not origin.is_signed:
        raise BadOrigin("origin must be signed")
    return origin.who


def ensure_none(origin: Origin) -> None:
    """Raise ``BadOrigin`` unless ``origin`` is unsigned."""
    if origin.is_signed:
        raise BadOrigin("origin must be none")


class System:
    """Chain-wide state shared by pallets: block number and deposited events."""

    def __init__(
        self,
        block_number: int = 0,
        block_hash_count: int = 250,
        ss58_prefix: int = 42,
    ) -> None:
        self.block_number = block_number
        self.block_hash_count = block_hash_count
        self.ss58_prefix = ss58_prefix
        self.extrinsic_index: int | None = None
        self._events: list[Any] = []

    @property
    def events(self) -> list[Any]:
        """Events deposited so far, oldest first."""
        return list(self._events)

    def deposit_event(self, event: Any) -> None:
        """Record an event."""
        self._events.append(event)

    def set_block_number(self, number: int) -> None:
        """Move the chain to block ``number``."""
        if number < 0:
            raise ValueError("block number cannot be negative")
        self.block_number = number

    def reset_events(self) -> None:
        """Forget all deposited events."""
        self._events.clear()

    @contextmanager
    def transactional(self, state: MutableMapping[Any, Any]) -> Iterator[MutableMapping[Any, Any]]:
        """Run a block whose changes to ``state`` and to events vanish if it raises."""
        saved_state = copy.deepcopy(dict(state))
        saved_events = list(self._events)
        try:
            yield state
        except BaseException:
            state.clear()
            state.update(saved_state)
            self._events[:] = saved_events
            raise


def new_test_ext() -> System:
    """A fresh system at genesis, configured like the test runtime."""
    return System(block_number=0, block_hash_count=250, ss58_prefix=42)