"""A pallet of collectible kitties that can be created, transferred and bred."""

from __future__ import annotations

import hashlib
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from palletsim.frame import DispatchError, Origin, System, ensure_signed

U32_MAX = 2**32 - 1
DNA_LENGTH = 16

_COUNT = "KittiesCount"
_KITTIES = "Kitties"
_OWNER = "Owner"


@dataclass(frozen=True)
class Kitty:
    """A kitty, identified by its 16 bytes of DNA."""

    dna: bytes

    def __post_init__(self) -> None:
        if len(self.dna) != DNA_LENGTH:
            raise ValueError(f"kitty DNA must be {DNA_LENGTH} bytes, got {len(self.dna)}")


@dataclass(frozen=True)
class KittyCreate:
    """A kitty was created (or bred) for an account."""

    who: Any
    kitty_id: int


@dataclass(frozen=True)
class KittyTransfer:
    """A kitty changed owner."""

    from_: Any
    to: Any
    kitty_id: int


class KittiesCountOverflow(DispatchError):
    """No more kitty indices are available."""


class NotOwner(DispatchError):
    """The caller does not own the kitty."""


class SameParentIndex(DispatchError):
    """A kitty cannot be bred with itself."""


class InvalidKittyIndex(DispatchError):
    """No kitty exists at the given index."""


def _encode(value: Any) -> bytes:
    """Deterministic byte encoding of a value used as hashing input."""
    if value is None:
        return b"\x00"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, bool):
        return b"\x01" if value else b"\x00"
    if isinstance(value, int):
        return value.to_bytes(16, "little", signed=True)
    if isinstance(value, str):
        return value.encode("utf-8")
    return repr(value).encode("utf-8")


def _encode_option_u32(value: int | None) -> bytes:
    if value is None:
        return b"\x00"
    return b"\x01" + value.to_bytes(4, "little")


class KittiesPallet:
    """Keeps the kitties, their owners and the number of kitties ever made."""

    def __init__(
        self,
        system: System,
        random_seed: Callable[[], bytes] | None = None,
    ) -> None:
        self.system = system
        self._random_seed = random_seed or (lambda: os.urandom(32))
        self._storage: dict[Any, Any] = {}

    def kitties_count(self) -> int | None:
        """The number of kitties made so far, or None before the first one."""
        return self._storage.get(_COUNT)

    def kitties(self, kitty_id: int) -> Kitty | None:
        """The kitty at ``kitty_id``, if any."""
        return self._storage.get((_KITTIES, kitty_id))

    def owner(self, kitty_id: int) -> Any:
        """The owner of the kitty at ``kitty_id``, if any."""
        return self._storage.get((_OWNER, kitty_id))

    def create(self, origin: Origin) -> None:
        """Create a kitty with random DNA for the signer."""
        with self.system.transactional(self._storage) as storage:
            who = ensure_signed(origin)
            kitty_id = self._next_id(storage)
            dna = self._random_value(who)
            self._store_new(storage, kitty_id, Kitty(dna), who)

    def transfer(self, origin: Origin, new_owner: Any, kitty_id: int) -> None:
        """Give the signer's kitty ``kitty_id`` to ``new_owner``."""
        with self.system.transactional(self._storage) as storage:
            who = ensure_signed(origin)
            if storage.get((_OWNER, kitty_id)) != who:
                raise NotOwner(f"account does not own kitty {kitty_id}")
            storage[(_OWNER, kitty_id)] = new_owner
            self.system.deposit_event(KittyTransfer(who, new_owner, kitty_id))

    def breed(self, origin: Origin, kitty_id_1: int, kitty_id_2: int) -> None:
        """Make a new kitty for the signer whose DNA mixes two parents."""
        with self.system.transactional(self._storage) as storage:
            who = ensure_signed(origin)
            if kitty_id_1 == kitty_id_2:
                raise SameParentIndex("parents must be different kitties")
            kitty1 = storage.get((_KITTIES, kitty_id_1))
            if kitty1 is None:
                raise InvalidKittyIndex(f"no kitty at index {kitty_id_1}")
            kitty2 = storage.get((_KITTIES, kitty_id_2))
            if kitty2 is None:
                raise InvalidKittyIndex(f"no kitty at index {kitty_id_2}")
            kitty_id = self._next_id(storage)
            selector = self._random_value(who)
            new_dna = bytes(
                (sel & a) | (~sel & 0xFF & b)
                for sel, a, b in zip(selector, kitty1.dna, kitty2.dna)
            )
            self._store_new(storage, kitty_id, Kitty(new_dna), who)

    def _next_id(self, storage: dict[Any, Any]) -> int:
        count = storage.get(_COUNT)
        if count is None:
            return 0
        if count == U32_MAX:
            raise KittiesCountOverflow("kitty index space exhausted")
        return count

    def _store_new(self, storage: dict[Any, Any], kitty_id: int, kitty: Kitty, who: Any) -> None:
        storage[(_KITTIES, kitty_id)] = kitty
        storage[(_OWNER, kitty_id)] = who
        storage[_COUNT] = kitty_id + 1
        self.system.deposit_event(KittyCreate(who, kitty_id))

    def _random_value(self, sender: Any) -> bytes:
        payload = (
            _encode(self._random_seed())
            + _encode(sender)
            + _encode_option_u32(self.system.extrinsic_index)
        )
        return hashlib.blake2b(payload, digest_size=DNA_LENGTH).digest()