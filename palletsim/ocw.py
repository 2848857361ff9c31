"""An offchain worker pallet that submits numbers and prices back on chain."""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from palletsim.frame import DispatchError, Origin, System, ensure_none, ensure_signed

logger = logging.getLogger(__name__)

KEY_TYPE = b"demo"
NUM_VEC_LEN = 10
UNSIGNED_TXS_PRIORITY = 100
TX_TYPES = 5

HTTP_REMOTE_REQUEST = "https://api.example.com/orgs/developer-hub"
HTTP_REMOTE_REQUEST_POLKADOT = "https://api.example.com/v2/assets/polkadot"
HTTP_HEADER_USER_AGENT = "palletsim-ocw"

FETCH_TIMEOUT_PERIOD = 3000  # milliseconds
LOCK_TIMEOUT_EXPIRATION = FETCH_TIMEOUT_PERIOD + 1000  # milliseconds
LOCK_BLOCK_EXPIRATION = 3  # blocks

GH_INFO_KEY = b"offchain-demo::gh-info"
LOCK_KEY = b"offchain-demo::lock"

U64_MAX = 2**64 - 1
U32_MAX = 2**32 - 1
PERMILL_ONE = 1_000_000

_NUMBERS = "Numbers"
_PRICES = "Prices"


class OcwError(DispatchError):
    """Base class for errors of the offchain worker pallet."""


class UnknownOffchainMux(OcwError):
    """The worker did not know which task to run."""


class NoLocalAcctForSigning(OcwError):
    """No local account is available to sign with."""


class OffchainSignedTxError(OcwError):
    """Sending a signed transaction failed."""


class OffchainUnsignedTxError(OcwError):
    """Sending an unsigned transaction failed."""


class OffchainUnsignedTxSignedPayloadError(OcwError):
    """Sending an unsigned transaction with a signed payload failed."""


class HttpFetchingError(OcwError):
    """Fetching or decoding remote data failed."""


@dataclass(frozen=True)
class Payload:
    """A number together with the public key that signed it."""

    number: int
    public: Any


@dataclass(frozen=True)
class GithubInfo:
    """Organisation information fetched from a remote API."""

    login: bytes
    blog: bytes
    public_repos: int

    def __str__(self) -> str:
        return (
            f"{{ login: {self.login.decode('utf-8')}, "
            f"blog: {self.blog.decode('utf-8')}, "
            f"public_repos: {self.public_repos} }}"
        )


@dataclass(frozen=True)
class NewNumber:
    """A number was recorded; ``who`` is None for unsigned submissions."""

    who: Any
    number: int


@dataclass(frozen=True)
class NewPrice:
    """A price, as (whole units, parts per million), was recorded."""

    who: Any
    price: tuple[int, int]


_CALL_NAMES = frozenset(
    {
        "submit_number_signed",
        "submit_number_unsigned",
        "submit_price_unsigned",
        "submit_number_unsigned_with_signed_payload",
    }
)


@dataclass(frozen=True)
class Call:
    """A call into this pallet: its name and its arguments."""

    name: str
    args: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if self.name not in _CALL_NAMES:
            raise ValueError(f"unknown call {self.name!r}")


class InvalidTransaction(Exception):
    """The transaction pool rejects a transaction; ``reason`` says why."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class ValidTransaction:
    """How the transaction pool should treat an accepted transaction."""

    priority: int
    provides: tuple[tuple[str, bytes], ...]
    longevity: int
    propagate: bool
    requires: tuple[tuple[str, bytes], ...] = field(default=())


def _check_u64(value: int) -> None:
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"{value} does not fit in an unsigned 64-bit integer")


def _check_price(price: tuple[int, int]) -> None:
    whole, parts = price
    _check_u64(whole)
    if not 0 <= parts <= PERMILL_ONE:
        raise ValueError(f"{parts} is not a valid parts-per-million value")


def _parse_unsigned(text: str, limit: int) -> int:
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"{text!r} is not an unsigned integer")
    value = int(text)
    if value > limit:
        raise ValueError(f"{text!r} is out of range")
    return value


def parse_price(text: str) -> tuple[int, int]:
    """Parse a decimal price into whole units and the first six fraction digits."""
    parts = text.split(".")
    if len(parts) < 2:
        raise ValueError(f"price {text!r} has no fractional part")
    whole = _parse_unsigned(parts[0], U64_MAX)
    fraction = parts[1]
    if len(fraction) < 6:
        raise ValueError(f"price {text!r} has fewer than six fraction digits")
    parts_per_million = _parse_unsigned(fraction[:6], U32_MAX)
    return whole, min(parts_per_million, PERMILL_ONE)


def parse_github_info(text: str) -> GithubInfo:
    """Parse organisation information from a JSON document."""
    document = json.loads(text)
    if not isinstance(document, dict):
        raise ValueError("expected a JSON object")
    login = document.get("login")
    blog = document.get("blog")
    repos = document.get("public_repos")
    if not isinstance(login, str) or not isinstance(blog, str):
        raise ValueError("login and blog must be strings")
    if isinstance(repos, bool) or not isinstance(repos, int) or not 0 <= repos <= U32_MAX:
        raise ValueError("public_repos must be an unsigned 32-bit integer")
    return GithubInfo(login.encode("utf-8"), blog.encode("utf-8"), repos)


def parse_price_info(text: str) -> tuple[int, int]:
    """Parse the USD price from a JSON asset document; a missing ``data`` gives zero."""
    document = json.loads(text)
    if not isinstance(document, dict):
        raise ValueError("expected a JSON object")
    if "data" not in document:
        return 0, 0
    data = document["data"]
    if not isinstance(data, dict):
        raise ValueError("data must be an object")
    price = data.get("priceUsd")
    if not isinstance(price, str):
        raise ValueError("priceUsd must be a string")
    return parse_price(price)


class OffchainStorage:
    """Local key-value storage shared between runs of the offchain worker."""

    def __init__(self) -> None:
        self._values: dict[bytes, Any] = {}

    def get(self, key: bytes) -> Any:
        """The value stored under ``key``, or None."""
        return self._values.get(key)

    def set(self, key: bytes, value: Any) -> None:
        """Store ``value`` under ``key``."""
        self._values[key] = value

    def pop(self, key: bytes, default: Any = None) -> Any:
        """Remove ``key`` and return its value, or ``default`` if it was absent."""
        return self._values.pop(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._values


class StorageLock:
    """A lock in offchain storage that expires after both a block and a time deadline."""

    def __init__(
        self,
        storage: OffchainStorage,
        key: bytes,
        block_expiration: int,
        time_expiration_ms: int,
        clock: Callable[[], int],
        block_number: Callable[[], int],
    ) -> None:
        self._storage = storage
        self._key = key
        self._block_expiration = block_expiration
        self._time_expiration = time_expiration_ms
        self._clock = clock
        self._block_number = block_number

    def _has_expired(self, deadline: tuple[int, int]) -> bool:
        block, timestamp = deadline
        return self._clock() > timestamp and self._block_number() > block

    def try_lock(self) -> bool:
        """Take the lock unless someone holds it and it has not yet expired."""
        deadline = self._storage.get(self._key)
        if deadline is not None and not self._has_expired(deadline):
            return False
        self._storage.set(
            self._key,
            (
                self._block_number() + self._block_expiration,
                self._clock() + self._time_expiration,
            ),
        )
        return True

    def release(self) -> None:
        """Give the lock up."""
        self._storage.pop(self._key)


class _Signer(Protocol):
    public: Any

    def sign(self, data: bytes) -> Any: ...


Fetch = Callable[[str, dict[str, str], int], tuple[int, bytes]]


def _http_get(url: str, headers: dict[str, str], timeout_ms: int) -> tuple[int, bytes]:
    request = urllib.request.Request(url, headers=headers)
    try:
        with urllib.request.urlopen(request, timeout=timeout_ms / 1000) as response:
            return response.status, response.read()
    except urllib.error.HTTPError as err:
        return err.code, err.read()


def _encode_payload(payload: Payload) -> bytes:
    public = payload.public
    public_bytes = bytes(public) if isinstance(public, (bytes, bytearray)) else repr(public).encode()
    return payload.number.to_bytes(8, "little") + public_bytes


class OcwPallet:
    """Keeps bounded lists of numbers and prices fed by an offchain worker."""

    def __init__(
        self,
        system: System,
        fetch: Fetch | None = None,
        signer: _Signer | None = None,
        submit_signed: Callable[[Any, Call], None] | None = None,
        submit_unsigned: Callable[[Call], None] | None = None,
        verify: Callable[[Payload, Any], bool] | None = None,
        storage: OffchainStorage | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.system = system
        self.signer = signer
        self.offchain_storage = storage if storage is not None else OffchainStorage()
        self._fetch = fetch or _http_get
        self._submit_signed = submit_signed or self._submit_signed_locally
        self._submit_unsigned = submit_unsigned or self._submit_unsigned_locally
        self._verify = verify or self._verify_with_local_signer
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._storage: dict[str, deque[Any]] = {
            _NUMBERS: deque(maxlen=NUM_VEC_LEN),
            _PRICES: deque(maxlen=NUM_VEC_LEN),
        }

    def numbers(self) -> list[int]:
        """Recorded numbers, oldest first."""
        return list(self._storage[_NUMBERS])

    def prices(self) -> list[tuple[int, int]]:
        """Recorded prices, oldest first."""
        return list(self._storage[_PRICES])

    def submit_number_signed(self, origin: Origin, number: int) -> None:
        """Record a number submitted by a signed account."""
        _check_u64(number)
        with self.system.transactional(self._storage) as storage:
            who = ensure_signed(origin)
            logger.info("submit_number_signed: (%s, %r)", number, who)
            storage[_NUMBERS].append(number)
            self.system.deposit_event(NewNumber(who, number))

    def submit_number_unsigned(self, origin: Origin, number: int) -> None:
        """Record a number submitted without a signature."""
        _check_u64(number)
        with self.system.transactional(self._storage) as storage:
            ensure_none(origin)
            logger.info("submit_number_unsigned: %s", number)
            storage[_NUMBERS].append(number)
            self.system.deposit_event(NewNumber(None, number))

    def submit_price_unsigned(self, origin: Origin, price: tuple[int, int]) -> None:
        """Record a price submitted without a signature."""
        price = tuple(price)
        _check_price(price)
        with self.system.transactional(self._storage) as storage:
            ensure_none(origin)
            storage[_PRICES].append(price)
            self.system.deposit_event(NewPrice(None, price))

    def submit_number_unsigned_with_signed_payload(
        self, origin: Origin, payload: Payload, signature: Any
    ) -> None:
        """Record the number of a signed payload; the signature is checked at validation."""
        _check_u64(payload.number)
        with self.system.transactional(self._storage) as storage:
            ensure_none(origin)
            logger.info(
                "submit_number_unsigned_with_signed_payload: (%s, %r)",
                payload.number,
                payload.public,
            )
            storage[_NUMBERS].append(payload.number)
            self.system.deposit_event(NewNumber(None, payload.number))

    def validate_unsigned(self, source: str, call: Call) -> ValidTransaction:
        """Accept the unsigned calls this pallet's worker makes; reject anything else."""

        def valid_tx(provide: bytes) -> ValidTransaction:
            return ValidTransaction(
                priority=UNSIGNED_TXS_PRIORITY,
                provides=(("ocw-demo", provide),),
                longevity=3,
                propagate=True,
            )

        if call.name == "submit_number_unsigned":
            return valid_tx(b"submit_number_unsigned")
        if call.name == "submit_number_unsigned_with_signed_payload":
            payload, signature = call.args
            if not self._verify(payload, signature):
                raise InvalidTransaction("BadProof")
            return valid_tx(b"submit_number_unsigned_with_signed_payload")
        raise InvalidTransaction("Call")

    def offchain_worker(self, block_number: int) -> None:
        """Run one of five worker tasks, chosen by the block number; failures are logged."""
        if block_number < 0:
            raise ValueError("block number cannot be negative")
        logger.info("Hello World from offchain workers!")
        tasks: dict[int, Callable[[], None]] = {
            0: lambda: self._offchain_signed_tx(block_number),
            1: lambda: self._offchain_unsigned_tx(block_number),
            2: lambda: self._offchain_unsigned_tx_signed_payload(block_number),
            3: self._fetch_github_info,
            4: self._fetch_price_info,
        }
        try:
            task = tasks.get(block_number % TX_TYPES)
            if task is None:
                raise UnknownOffchainMux("no task for this block")
            task()
        except OcwError as err:
            logger.error("offchain_worker error: %r", err)

    def _dispatch(self, origin: Origin, call: Call) -> None:
        handlers: dict[str, Callable[..., None]] = {
            "submit_number_signed": self.submit_number_signed,
            "submit_number_unsigned": self.submit_number_unsigned,
            "submit_price_unsigned": self.submit_price_unsigned,
            "submit_number_unsigned_with_signed_payload": (
                self.submit_number_unsigned_with_signed_payload
            ),
        }
        handlers[call.name](origin, *call.args)

    def _submit_signed_locally(self, account: Any, call: Call) -> None:
        self._dispatch(Origin.signed(account), call)

    def _submit_unsigned_locally(self, call: Call) -> None:
        self.validate_unsigned("local", call)
        self._dispatch(Origin.none(), call)

    def _verify_with_local_signer(self, payload: Payload, signature: Any) -> bool:
        if self.signer is None or self.signer.public != payload.public:
            return False
        return self.signer.sign(_encode_payload(payload)) == signature

    def _offchain_signed_tx(self, block_number: int) -> None:
        if self.signer is None:
            logger.error("No local account available")
            raise NoLocalAcctForSigning("no local account available")
        account = self.signer.public
        try:
            self._submit_signed(account, Call("submit_number_signed", (block_number,)))
        except Exception as err:
            logger.error("failure: offchain_signed_tx: tx sent: %r", account)
            raise OffchainSignedTxError("signed transaction failed") from err

    def _offchain_unsigned_tx(self, block_number: int) -> None:
        try:
            self._submit_unsigned(Call("submit_number_unsigned", (block_number,)))
        except Exception as err:
            logger.error("Failed in offchain_unsigned_tx")
            raise OffchainUnsignedTxError("unsigned transaction failed") from err

    def _offchain_unsigned_tx_signed_payload(self, block_number: int) -> None:
        if self.signer is None:
            logger.error("No local account available")
            raise NoLocalAcctForSigning("no local account available")
        payload = Payload(block_number, self.signer.public)
        signature = self.signer.sign(_encode_payload(payload))
        call = Call("submit_number_unsigned_with_signed_payload", (payload, signature))
        try:
            self._submit_unsigned(call)
        except Exception as err:
            logger.error("Failed in offchain_unsigned_tx_signed_payload")
            raise OffchainUnsignedTxSignedPayloadError("signed payload transaction failed") from err

    def _offchain_price_tx(self, price: tuple[int, int]) -> None:
        try:
            self._submit_unsigned(Call("submit_price_unsigned", (price,)))
        except Exception as err:
            logger.error("Failed in offchain_unsigned_tx")
            raise OffchainUnsignedTxError("unsigned transaction failed") from err

    def _fetch_price_info(self) -> None:
        price = self._fetch_and_parse(HTTP_REMOTE_REQUEST_POLKADOT, parse_price_info)
        self._offchain_price_tx(price)

    def _fetch_github_info(self) -> None:
        cached = self.offchain_storage.get(GH_INFO_KEY)
        if isinstance(cached, GithubInfo):
            logger.info("cached gh-info: %s", cached)
            return
        lock = StorageLock(
            self.offchain_storage,
            LOCK_KEY,
            LOCK_BLOCK_EXPIRATION,
            LOCK_TIMEOUT_EXPIRATION,
            self._clock,
            lambda: self.system.block_number,
        )
        if not lock.try_lock():
            return
        try:
            info = self._fetch_and_parse(HTTP_REMOTE_REQUEST, parse_github_info)
            self.offchain_storage.set(GH_INFO_KEY, info)
        finally:
            lock.release()

    def _fetch_and_parse(self, url: str, parse: Callable[[str], Any]) -> Any:
        body = self._fetch_from_remote(url)
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as err:
            raise HttpFetchingError("response is not UTF-8") from err
        logger.info("%s", text)
        try:
            return parse(text)
        except ValueError as err:
            raise HttpFetchingError("response could not be parsed") from err

    def _fetch_from_remote(self, url: str) -> bytes:
        logger.info("sending request to: %s", url)
        try:
            status, body = self._fetch(
                url, {"User-Agent": HTTP_HEADER_USER_AGENT}, FETCH_TIMEOUT_PERIOD
            )
        except Exception as err:
            logger.error("fetch_from_remote error: %r", err)
            raise HttpFetchingError("request failed") from err
        if status != 200:
            logger.error("Unexpected http request status code: %s", status)
            raise HttpFetchingError(f"unexpected status code {status}")
        return bytes(body)