"""Runtime version information and the configuration constants of the chain."""

from __future__ import annotations

from dataclasses import dataclass, field

BlockNumber = int
Balance = int

RUNTIME_APIS: tuple[str, ...] = (
    "Core",
    "Metadata",
    "BlockBuilder",
    "TaggedTransactionQueue",
    "OffchainWorkerApi",
    "AuraApi",
    "SessionKeys",
    "GrandpaApi",
    "AccountNonceApi",
    "TransactionPaymentApi",
)


@dataclass(frozen=True)
class RuntimeVersion:
    """Identifies a runtime build and decides which other builds it can stand in for."""

    spec_name: str
    impl_name: str
    authoring_version: int
    spec_version: int
    impl_version: int
    apis: tuple[str, ...] = RUNTIME_APIS
    transaction_version: int = 1

    def can_call_with(self, other: RuntimeVersion) -> bool:
        """Whether this runtime may be used in place of ``other``.

        That needs the same specification name, specification version and
        authoring version.
        """
        return (
            self.spec_name == other.spec_name
            and self.spec_version == other.spec_version
            and self.authoring_version == other.authoring_version
        )

    def can_author_with(self, other: RuntimeVersion) -> bool:
        """Whether blocks authored with this runtime are acceptable to ``other``."""
        return (
            self.spec_name == other.spec_name
            and self.authoring_version == other.authoring_version
        )


VERSION = RuntimeVersion(
    spec_name="node-template",
    impl_name="node-template",
    authoring_version=1,
    spec_version=100,
    impl_version=1,
    apis=RUNTIME_APIS,
    transaction_version=1,
)


@dataclass(frozen=True)
class NativeVersion:
    """The version of a natively compiled runtime, plus extra authoring versions it accepts."""

    runtime_version: RuntimeVersion
    can_author_with: frozenset[int] = field(default_factory=frozenset)

    def allows_authoring(self, onchain: RuntimeVersion) -> bool:
        """Whether this native runtime may author blocks for the ``onchain`` runtime."""
        return (
            self.runtime_version.can_author_with(onchain)
            or onchain.authoring_version in self.can_author_with
        )


def native_version() -> NativeVersion:
    """The version used to identify this runtime when run natively."""
    return NativeVersion(runtime_version=VERSION, can_author_with=frozenset())


def minimum_period(slot_duration: int) -> int:
    """The minimum time in milliseconds between two timestamps: half a slot."""
    if slot_duration < 0:
        raise ValueError("slot duration cannot be negative")
    return slot_duration // 2


# Average expected block time; blocks are produced no faster than this.
MILLISECS_PER_BLOCK = 6000
# Changing the slot duration after the chain has started halts block production.
SLOT_DURATION = MILLISECS_PER_BLOCK

MINUTES: BlockNumber = 60_000 // MILLISECS_PER_BLOCK
HOURS: BlockNumber = MINUTES * 60
DAYS: BlockNumber = HOURS * 24

MINIMUM_PERIOD = minimum_period(SLOT_DURATION)

NORMAL_DISPATCH_RATIO_PERCENT = 75
WEIGHT_PER_SECOND = 1_000_000_000_000
MAXIMUM_BLOCK_WEIGHT = 2 * WEIGHT_PER_SECOND
MAXIMUM_BLOCK_LENGTH = 5 * 1024 * 1024
NORMAL_BLOCK_LENGTH = MAXIMUM_BLOCK_LENGTH * NORMAL_DISPATCH_RATIO_PERCENT // 100

BLOCK_HASH_COUNT: BlockNumber = 2400
SS58_PREFIX = 42

EXISTENTIAL_DEPOSIT: Balance = 500
MAX_LOCKS = 50
TRANSACTION_BYTE_FEE: Balance = 1