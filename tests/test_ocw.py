import hashlib
import json
from dataclasses import dataclass

import pytest

from palletsim import ocw
from palletsim.frame import BadOrigin, Origin, new_test_ext
from palletsim.ocw import (
    Call,
    GithubInfo,
    InvalidTransaction,
    NewNumber,
    OcwPallet,
    OffchainStorage,
    Payload,
    StorageLock,
    parse_github_info,
    parse_price,
    parse_price_info,
)


@dataclass
class FakeSigner:
    public: bytes

    def sign(self, data: bytes) -> bytes:
        return hashlib.blake2b(self.public + data, digest_size=16).digest()


class FakeFetch:
    def __init__(self, status, body):
        self.status = status
        self.body = body
        self.calls = []

    def __call__(self, url, headers, timeout_ms):
        self.calls.append((url, headers, timeout_ms))
        return self.status, self.body


SIGNER = FakeSigner(b"\x07" * 32)

GH_BODY = json.dumps(
    {"login": "demo", "blog": "blog.example.com", "public_repos": 7, "extra": True}
).encode()


def make_pallet(**kwargs):
    return OcwPallet(new_test_ext(), **kwargs)


def test_parse_price_takes_six_fraction_digits():
    assert parse_price("27.123456789") == (27, 123456)


@pytest.mark.parametrize("text", ["27", "27.12", "abc.123456", "-1.123456"])
def test_parse_price_rejects_malformed(text):
    with pytest.raises(ValueError):
        parse_price(text)


def test_parse_github_info_ignores_extra_fields():
    info = parse_github_info(GH_BODY.decode())
    assert info == GithubInfo(b"demo", b"blog.example.com", 7)
    assert str(info) == "{ login: demo, blog: blog.example.com, public_repos: 7 }"


def test_parse_github_info_requires_fields():
    with pytest.raises(ValueError):
        parse_github_info(json.dumps({"login": "demo", "public_repos": 1}))


def test_parse_price_info():
    assert parse_price_info(json.dumps({"data": {"priceUsd": "7.250000123"}})) == (7, 250000)
    assert parse_price_info(json.dumps({"other": 1})) == (0, 0)
    with pytest.raises(ValueError):
        parse_price_info(json.dumps({"data": {}}))


def test_submit_number_signed_records_and_emits():
    pallet = make_pallet()
    pallet.submit_number_signed(Origin.signed(5), 42)
    assert pallet.numbers() == [42]
    assert pallet.system.events == [NewNumber(5, 42)]


def test_submit_number_signed_rejects_unsigned_origin():
    pallet = make_pallet()
    with pytest.raises(BadOrigin):
        pallet.submit_number_signed(Origin.none(), 1)
    assert pallet.numbers() == []
    assert pallet.system.events == []


def test_submit_number_unsigned_rejects_signed_origin():
    pallet = make_pallet()
    with pytest.raises(BadOrigin):
        pallet.submit_number_unsigned(Origin.signed(1), 1)
    assert pallet.numbers() == []


def test_numbers_are_bounded():
    pallet = make_pallet()
    for n in range(ocw.NUM_VEC_LEN + 2):
        pallet.submit_number_unsigned(Origin.none(), n)
    assert pallet.numbers() == list(range(2, ocw.NUM_VEC_LEN + 2))
    assert len(pallet.numbers()) == ocw.NUM_VEC_LEN


def test_prices_are_bounded():
    pallet = make_pallet()
    for n in range(ocw.NUM_VEC_LEN + 1):
        pallet.submit_price_unsigned(Origin.none(), (n, 0))
    assert pallet.prices()[0] == (1, 0)
    assert len(pallet.prices()) == ocw.NUM_VEC_LEN


def test_validate_unsigned_accepts_number():
    pallet = make_pallet()
    valid = pallet.validate_unsigned("local", Call("submit_number_unsigned", (3,)))
    assert valid.priority == ocw.UNSIGNED_TXS_PRIORITY
    assert valid.longevity == 3
    assert valid.propagate is True
    assert valid.provides == (("ocw-demo", b"submit_number_unsigned"),)


def test_validate_unsigned_rejects_other_calls():
    pallet = make_pallet()
    with pytest.raises(InvalidTransaction) as info:
        pallet.validate_unsigned("local", Call("submit_number_signed", (3,)))
    assert info.value.reason == "Call"


def test_validate_unsigned_rejects_bad_signature():
    pallet = make_pallet(signer=SIGNER)
    payload = Payload(3, SIGNER.public)
    call = Call("submit_number_unsigned_with_signed_payload", (payload, b"forged"))
    with pytest.raises(InvalidTransaction) as info:
        pallet.validate_unsigned("local", call)
    assert info.value.reason == "BadProof"


def test_unknown_call_name_rejected():
    with pytest.raises(ValueError):
        Call("do_anything")


def test_worker_signed_tx_on_block_zero():
    pallet = make_pallet(signer=SIGNER)
    pallet.offchain_worker(10)
    assert pallet.numbers() == [10]
    assert pallet.system.events == [NewNumber(SIGNER.public, 10)]


def test_worker_without_signer_logs_error(caplog):
    pallet = make_pallet()
    pallet.offchain_worker(0)
    assert pallet.numbers() == []
    assert "NoLocalAcctForSigning" in caplog.text


def test_worker_signed_tx_failure(caplog):
    def failing(account, call):
        raise RuntimeError("pool full")

    pallet = make_pallet(signer=SIGNER, submit_signed=failing)
    pallet.offchain_worker(5)
    assert pallet.numbers() == []
    assert "OffchainSignedTxError" in caplog.text


def test_worker_unsigned_tx_on_block_one():
    pallet = make_pallet()
    pallet.offchain_worker(6)
    assert pallet.numbers() == [6]
    assert pallet.system.events == [NewNumber(None, 6)]


def test_worker_signed_payload_on_block_two():
    pallet = make_pallet(signer=SIGNER)
    pallet.offchain_worker(7)
    assert pallet.numbers() == [7]
    assert pallet.system.events == [NewNumber(None, 7)]


def test_worker_signed_payload_rejected(caplog):
    pallet = make_pallet(signer=SIGNER, verify=lambda payload, signature: False)
    pallet.offchain_worker(2)
    assert pallet.numbers() == []
    assert "OffchainUnsignedTxSignedPayloadError" in caplog.text


def test_worker_fetches_github_info_once():
    fetch = FakeFetch(200, GH_BODY)
    storage = OffchainStorage()
    pallet = make_pallet(fetch=fetch, storage=storage, clock=lambda: 0)
    pallet.offchain_worker(3)
    assert storage.get(ocw.GH_INFO_KEY) == GithubInfo(b"demo", b"blog.example.com", 7)
    assert ocw.LOCK_KEY not in storage
    pallet.offchain_worker(8)
    assert len(fetch.calls) == 1
    url, headers, timeout = fetch.calls[0]
    assert url == ocw.HTTP_REMOTE_REQUEST
    assert headers["User-Agent"] == ocw.HTTP_HEADER_USER_AGENT
    assert timeout == ocw.FETCH_TIMEOUT_PERIOD


def test_worker_github_bad_status(caplog):
    fetch = FakeFetch(404, b"{}")
    storage = OffchainStorage()
    pallet = make_pallet(fetch=fetch, storage=storage, clock=lambda: 0)
    pallet.offchain_worker(3)
    assert storage.get(ocw.GH_INFO_KEY) is None
    assert ocw.LOCK_KEY not in storage
    assert "HttpFetchingError" in caplog.text


def test_worker_github_skips_when_locked():
    fetch = FakeFetch(200, GH_BODY)
    storage = OffchainStorage()
    storage.set(ocw.LOCK_KEY, (100, 10_000))
    pallet = make_pallet(fetch=fetch, storage=storage, clock=lambda: 0)
    pallet.offchain_worker(3)
    assert fetch.calls == []
    assert storage.get(ocw.GH_INFO_KEY) is None


def test_worker_price_rejected_by_default_pool(caplog):
    fetch = FakeFetch(200, json.dumps({"data": {"priceUsd": "7.250000123"}}).encode())
    pallet = make_pallet(fetch=fetch)
    pallet.offchain_worker(4)
    assert pallet.prices() == []
    assert "OffchainUnsignedTxError" in caplog.text


def test_worker_price_with_direct_submission():
    fetch = FakeFetch(200, json.dumps({"data": {"priceUsd": "7.250000123"}}).encode())
    holder = []

    def submit(call):
        holder[0].submit_price_unsigned(Origin.none(), *call.args)

    pallet = make_pallet(fetch=fetch, submit_unsigned=submit)
    holder.append(pallet)
    pallet.offchain_worker(4)
    assert pallet.prices() == [parse_price("7.250000123")]
    assert fetch.calls[0][0] == ocw.HTTP_REMOTE_REQUEST_POLKADOT


def test_storage_lock_expires_on_block_and_time():
    storage = OffchainStorage()
    now = [0]
    block = [0]
    lock = StorageLock(storage, b"lock", 3, 4000, lambda: now[0], lambda: block[0])
    assert lock.try_lock() is True
    assert lock.try_lock() is False
    block[0] = 4
    now[0] = 100
    assert lock.try_lock() is False
    now[0] = 4001
    assert lock.try_lock() is True


def test_storage_lock_release():
    storage = OffchainStorage()
    lock = StorageLock(storage, b"lock", 3, 4000, lambda: 0, lambda: 0)
    assert lock.try_lock() is True
    lock.release()
    assert b"lock" not in storage
    assert lock.try_lock() is True


def test_negative_block_number_rejected():
    pallet = make_pallet()
    with pytest.raises(ValueError):
        pallet.offchain_worker(-1)