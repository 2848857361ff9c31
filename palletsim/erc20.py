"""A fungible token contract with balances, allowances and transfer events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

BALANCE_MAX = 2**128 - 1


class Erc20Error(Exception):
    """Base class for token contract errors."""


class InsufficientBalance(Erc20Error):
    """The sender does not hold enough tokens."""


class InsufficientApproval(Erc20Error):
    """The spender is not allowed to move that many tokens."""


@dataclass(frozen=True)
class Transfer:
    """Tokens moved; ``from_`` is None when they were minted."""

    from_: Any
    to: Any
    value: int


@dataclass(frozen=True)
class Approval:
    """An owner allowed a spender to move tokens on its behalf."""

    owner: Any
    spender: Any
    value: int


@dataclass(frozen=True)
class DefaultAccounts:
    """The well-known accounts of the test environment."""

    alice: bytes
    bob: bytes
    charlie: bytes
    django: bytes
    eve: bytes
    frank: bytes


def default_accounts() -> DefaultAccounts:
    """The default test accounts, each 32 bytes of one repeated value."""
    return DefaultAccounts(*(bytes([n]) * 32 for n in range(1, 7)))


class ContractEnv:
    """Execution environment: the current caller and the events emitted."""

    def __init__(self, caller: Any = None) -> None:
        self._callers: list[Any] = [default_accounts().alice if caller is None else caller]
        self._events: list[Any] = []

    def caller(self) -> Any:
        """The account calling the contract right now."""
        return self._callers[-1]

    def emit_event(self, event: Any) -> None:
        """Record an event."""
        self._events.append(event)

    def recorded_events(self) -> list[Any]:
        """Events emitted so far, oldest first."""
        return list(self._events)

    def push_execution_context(self, caller: Any) -> None:
        """Make ``caller`` the current caller until the context is popped."""
        self._callers.append(caller)

    def pop_execution_context(self) -> Any:
        """Drop the innermost execution context and return its caller."""
        if len(self._callers) == 1:
            raise IndexError("cannot pop the base execution context")
        return self._callers.pop()


def _check_balance(value: int) -> None:
    if not 0 <= value <= BALANCE_MAX:
        raise ValueError(f"{value} is not a valid balance")


class Erc20:
    """A token whose whole supply is minted to the deployer."""

    def __init__(self, supply: int, env: ContractEnv | None = None) -> None:
        _check_balance(supply)
        self.env = env if env is not None else ContractEnv()
        caller = self.env.caller()
        self._total_supply = supply
        self._balances: dict[Any, int] = {caller: supply}
        self._allowances: dict[tuple[Any, Any], int] = {}
        self.env.emit_event(Transfer(None, caller, supply))

    def total_supply(self) -> int:
        """Tokens in existence."""
        return self._total_supply

    def balance_of(self, who: Any) -> int:
        """Tokens held by ``who``."""
        return self._balances.get(who, 0)

    def allowance(self, who: Any, spender: Any) -> int:
        """Tokens ``spender`` may still move out of ``who``'s account."""
        return self._allowances.get((who, spender), 0)

    def transfer(self, to: Any, value: int) -> None:
        """Move ``value`` tokens from the caller to ``to``."""
        self.inner_transfer(self.env.caller(), to, value)

    def approve(self, to: Any, value: int) -> None:
        """Allow ``to`` to move up to ``value`` of the caller's tokens."""
        _check_balance(value)
        owner = self.env.caller()
        self._allowances[(owner, to)] = value
        self.env.emit_event(Approval(owner, to, value))

    def transfer_from(self, from_: Any, to: Any, value: int) -> None:
        """Move ``value`` tokens from ``from_`` to ``to`` using the caller's allowance."""
        caller = self.env.caller()
        allowance = self.allowance(from_, caller)
        if allowance < value:
            raise InsufficientApproval(f"allowance {allowance} is below {value}")
        self.inner_transfer(from_, to, value)
        self._allowances[(from_, caller)] = allowance - value

    def inner_transfer(self, from_: Any, to: Any, value: int) -> None:
        """Move ``value`` tokens between two accounts without checking allowances."""
        _check_balance(value)
        from_balance = self.balance_of(from_)
        if from_balance < value:
            raise InsufficientBalance(f"balance {from_balance} is below {value}")
        self._balances[from_] = from_balance - value
        to_balance = self.balance_of(to)
        self._balances[to] = to_balance + value
        self.env.emit_event(Transfer(from_, to, value))