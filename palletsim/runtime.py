"""A runtime that composes the system, template, kitties and offchain worker pallets."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from palletsim.constants import BLOCK_HASH_COUNT, SS58_PREFIX, VERSION, RuntimeVersion
from palletsim.frame import Origin, System
from palletsim.kitties import KittiesPallet
from palletsim.ocw import Call, Fetch, OcwPallet, ValidTransaction
from palletsim.template import TemplatePallet

TEMPLATE_MODULE = "TemplateModule"
KITTIES_MODULE = "KittiesModule"
OCW_DEMO = "OcwDemo"

U32_MAX = 2**32 - 1


class Runtime:
    """The chain's state transition function: routes calls to the pallets that own them."""

    def __init__(
        self,
        random_seed: Callable[[], bytes] | None = None,
        fetch: Fetch | None = None,
        signer: Any = None,
    ) -> None:
        self.system = System(
            block_number=0,
            block_hash_count=BLOCK_HASH_COUNT,
            ss58_prefix=SS58_PREFIX,
        )
        self.template = TemplatePallet(self.system)
        self.kitties = KittiesPallet(self.system, random_seed)
        self.ocw = OcwPallet(
            self.system,
            fetch=fetch,
            signer=signer,
            submit_signed=self._submit_signed,
            submit_unsigned=self.apply_unsigned,
        )
        self._nonces: dict[Any, int] = {}
        self._extrinsic_count = 0
        self._calls: dict[str, dict[str, Callable[..., None]]] = {
            TEMPLATE_MODULE: {
                "do_something": self.template.do_something,
                "cause_error": self.template.cause_error,
            },
            KITTIES_MODULE: {
                "create": self.kitties.create,
                "transfer": self.kitties.transfer,
                "breed": self.kitties.breed,
            },
            OCW_DEMO: {
                "submit_number_signed": self.ocw.submit_number_signed,
                "submit_number_unsigned": self.ocw.submit_number_unsigned,
                "submit_price_unsigned": self.ocw.submit_price_unsigned,
                "submit_number_unsigned_with_signed_payload": (
                    self.ocw.submit_number_unsigned_with_signed_payload
                ),
            },
        }

    def version(self) -> RuntimeVersion:
        """The version of this runtime."""
        return VERSION

    def account_nonce(self, account: Any) -> int:
        """The number of signed transactions ``account`` has applied."""
        return self._nonces.get(account, 0)

    def dispatch(self, origin: Origin, pallet: str, call: str, *args: Any) -> None:
        """Apply the call ``call`` of ``pallet`` from ``origin``.

        A signed origin has its nonce bumped even when the call itself fails.
        """
        try:
            handler = self._calls[pallet][call]
        except KeyError:
            raise ValueError(f"unknown call {pallet}.{call}") from None
        if origin.is_signed:
            nonce = self._nonces.get(origin.who, 0)
            if nonce == U32_MAX:
                raise OverflowError("account nonce exhausted")
            self._nonces[origin.who] = nonce + 1
        self.system.extrinsic_index = self._extrinsic_count
        self._extrinsic_count += 1
        try:
            handler(origin, *args)
        finally:
            self.system.extrinsic_index = None

    def apply_unsigned(self, call: Call) -> ValidTransaction:
        """Validate an unsigned call of the offchain worker pallet, then apply it."""
        validity = self.ocw.validate_unsigned("external", call)
        self.dispatch(Origin.none(), OCW_DEMO, call.name, *call.args)
        return validity

    def offchain_worker(self, block_number: int) -> None:
        """Run the offchain workers for ``block_number``."""
        self.ocw.offchain_worker(block_number)

    def run_to_block(self, number: int) -> None:
        """Import blocks up to ``number``, running the offchain workers after each."""
        current = self.system.block_number
        if number < current:
            raise ValueError(f"cannot go back from block {current} to {number}")
        for block in range(current + 1, number + 1):
            self.system.set_block_number(block)
            self.system.reset_events()
            self._extrinsic_count = 0
            self.offchain_worker(block)

    def _submit_signed(self, account: Any, call: Call) -> None:
        self.dispatch(Origin.signed(account), OCW_DEMO, call.name, *call.args)