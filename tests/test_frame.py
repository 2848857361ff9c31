import pytest

from palletsim.frame import (
    BadOrigin,
    DispatchError,
    Origin,
    System,
    ensure_none,
    ensure_signed,
    new_test_ext,
)


def test_signed_origin_yields_account():
    assert ensure_signed(Origin.signed(7)) == 7


def test_ensure_signed_rejects_none_origin():
    with pytest.raises(BadOrigin):
        ensure_signed(Origin.none())


def test_ensure_none_rejects_signed_origin():
    with pytest.raises(BadOrigin):
        ensure_none(Origin.signed(1))


def test_ensure_none_accepts_none_origin():
    assert ensure_none(Origin.none()) is None


def test_bad_origin_is_dispatch_error():
    with pytest.raises(DispatchError):
        ensure_signed(Origin.none())


def test_origins_compare_by_value():
    assert Origin.signed(3) == Origin.signed(3)
    assert Origin.none() == Origin.none()
    assert Origin.signed(3) != Origin.none()


def test_new_test_ext_uses_mock_parameters():
    system = new_test_ext()
    assert system.block_hash_count == 250
    assert system.ss58_prefix == 42
    assert system.block_number == 0
    assert system.events == []


def test_deposit_and_reset_events():
    system = System()
    system.deposit_event("a")
    system.deposit_event("b")
    assert system.events == ["a", "b"]
    system.reset_events()
    assert system.events == []


def test_events_property_is_a_copy():
    system = System()
    system.deposit_event("a")
    system.events.append("b")
    assert system.events == ["a"]


def test_set_block_number():
    system = System()
    system.set_block_number(12)
    assert system.block_number == 12


def test_set_block_number_rejects_negative():
    with pytest.raises(ValueError):
        System().set_block_number(-1)


def test_transactional_commits_on_success():
    system = System()
    state = {"x": 1}
    with system.transactional(state) as s:
        s["x"] = 2
        system.deposit_event("done")
    assert state == {"x": 2}
    assert system.events == ["done"]


def test_transactional_rolls_back_on_error():
    system = System()
    system.deposit_event("before")
    state = {"x": [1]}
    with pytest.raises(DispatchError):
        with system.transactional(state) as s:
            s["x"].append(2)
            s["y"] = 3
            system.deposit_event("inside")
            raise DispatchError("fail")
    assert state == {"x": [1]}
    assert system.events == ["before"]