# SPDX-License-Identifier: MIT
"""
Runtime call semantics, events and the error taxonomy:
- an exception inside a call reverts state and buffered events
- nested calls share the outermost TxEnv
- external() normalizes callers and guards the payable flag
- events are validated and render to tagged receipts
"""
from __future__ import annotations

import threading

import pytest

from minimint.errors import AuthorizationError, InputError, MintError, PaymentError, StateError, require
from minimint.runtime import Contract, Runtime, external, to_hex
from minimint.runtime.context import BlockEnv, ContextError, to_address
from minimint.runtime.events import EventError, make_event, to_receipt


class Counter(Contract):
    NAME = "counter"

    def __init__(self, runtime):
        super().__init__(runtime)
        self._count = self.table("count")

    @external
    def inc(self, caller, fail=False):
        self._count["n"] = self._count.get("n", 0) + 1
        self.emit("Incremented", by=caller, total=self._count["n"])
        require(not fail, "told to fail")
        return self._count["n"]

    @external(payable=True)
    def pay(self, caller, *, value=0):
        self.emit("Paid", by=caller, value=self.runtime.tx.value)
        return self.runtime.tx.value

    @external
    def inc_twice(self, caller):
        self.inc(self.address)
        self.emit("Outer", sender=self.runtime.tx.sender)
        return self.inc(self.address)


def _addr(n: int) -> bytes:
    return bytes([n]) * 20


# ---------- errors ----------

def test_error_code_and_dict():
    err = StateError("already claimed", {"account": "0xab"})
    assert str(err) == "already claimed"
    assert err.code == "STATE:ALREADY_CLAIMED"
    assert err.to_dict() == {
        "category": "state",
        "code": "STATE:ALREADY_CLAIMED",
        "reason": "already claimed",
        "data": {"account": "0xab"},
    }
    assert isinstance(err, MintError)
    assert PaymentError("incorrect payment").code == "PAYMENT:INCORRECT_PAYMENT"


def test_require_raises_requested_category():
    require(True, "never")
    with pytest.raises(AuthorizationError) as ei:
        require(False, "not token owner", error=AuthorizationError, data={"token_id": 3})
    assert ei.value.data == {"token_id": 3}


# ---------- calls ----------

def test_failed_call_reverts_state_and_events():
    rt = Runtime()
    c = Counter(rt)
    assert c.inc(_addr(1)) == 1
    with pytest.raises(StateError, match="told to fail"):
        c.inc(_addr(1), fail=True)
    assert c._count.get("n") == 1
    assert rt.events.names() == ["Incremented"]
    assert not rt.in_call
    assert rt.db.depth == 0


def test_nested_calls_share_outer_tx_and_publish_once():
    rt = Runtime()
    c = Counter(rt)
    assert c.inc_twice(_addr(7)) == 2
    names = rt.events.names()
    assert names == ["Incremented", "Outer", "Incremented"]
    outer = rt.events.last("Outer")
    assert outer["sender"] == _addr(7)
    assert {e.tx_nonce for e in rt.events} == {0}


def test_calls_from_other_threads_wait_for_the_outer_call():
    rt = Runtime()
    c = Counter(rt)
    entered, release = threading.Event(), threading.Event()
    seen = {}

    def hold():
        with rt.call("counter", "hold", _addr(1)) as tx:
            seen["outer_nonce"] = tx.nonce
            entered.set()
            release.wait(5)

    def bump():
        try:
            seen["total"] = c.inc(_addr(2))
            seen["sender"] = rt.events.last("Incremented")["by"]
            seen["nonce"] = rt.events.last("Incremented").tx_nonce
        except Exception as exc:  # surfaced below
            seen["error"] = exc

    a = threading.Thread(target=hold)
    a.start()
    assert entered.wait(5)
    b = threading.Thread(target=bump)
    b.start()
    b.join(0.2)
    assert b.is_alive()
    assert "total" not in seen

    release.set()
    a.join(5)
    b.join(5)
    assert "error" not in seen
    assert seen["total"] == 1
    assert seen["sender"] == _addr(2)
    assert seen["nonce"] == seen["outer_nonce"] + 1
    assert not rt.in_call


def test_each_outer_call_gets_a_new_nonce_and_hash():
    rt = Runtime()
    c = Counter(rt)
    seen = []
    for _ in range(3):
        with rt.call("counter", "peek", _addr(1)) as tx:
            seen.append((tx.nonce, tx.tx_hash))
    assert [n for n, _ in seen] == [0, 1, 2]
    assert len({h for _, h in seen}) == 3
    c.inc(_addr(1))
    assert rt.events.last().tx_nonce == 3


def test_external_normalizes_hex_caller():
    rt = Runtime()
    c = Counter(rt)
    c.inc("0x" + "11" * 20)
    assert rt.events.last("Incremented")["by"] == _addr(0x11)
    with pytest.raises(InputError, match="invalid address"):
        c.inc("0x1234")


def test_value_only_accepted_by_payable_methods():
    rt = Runtime()
    c = Counter(rt)
    assert c.pay(_addr(2), value=5) == 5
    with pytest.raises(TypeError):
        c.inc(_addr(2), value=5)


def test_tx_unavailable_outside_call():
    rt = Runtime()
    with pytest.raises(RuntimeError):
        rt.tx


def test_advance_moves_clock_forward():
    rt = Runtime(timestamp=100)
    rt.advance(seconds=30, blocks=2)
    assert rt.block.height == 2
    assert rt.timestamp == 130
    with pytest.raises(ContextError):
        rt.advance(seconds=-1)


def test_runtime_state_survives_save_and_load(tmp_path):
    rt = Runtime(chain_id=99, timestamp=500)
    c = Counter(rt)
    c.inc(_addr(1))
    rt.advance(seconds=10)
    path = tmp_path / "rt.cbor"
    rt.save(path)

    again = Runtime.load(path)
    assert again.chain_id == 99
    assert again.block == BlockEnv(height=1, timestamp=510, chain_id=99)
    assert Counter(again)._count.get("n") == 1
    with again.call("counter", "peek", _addr(1)) as tx:
        assert tx.nonce == 1


# ---------- events ----------

def test_event_validation():
    ev = make_event(_addr(1), "Transfer", {"from": _addr(0), "token_id": 3}, tx_nonce=0, block_height=0)
    assert ev["token_id"] == 3
    with pytest.raises(EventError):
        make_event(_addr(1), "bad name", {}, tx_nonce=0, block_height=0)
    with pytest.raises(EventError):
        make_event(_addr(1), "Big", {"n": 1 << 300}, tx_nonce=0, block_height=0)
    with pytest.raises(EventError):
        make_event(_addr(1), "Obj", {"x": object()}, tx_nonce=0, block_height=0)


def test_receipt_tags_argument_types():
    ev = make_event(
        _addr(1),
        "Mixed",
        {"who": _addr(2), "ok": True, "n": 7, "s": "hi", "ids": (1, 2)},
        tx_nonce=4,
        block_height=9,
    )
    r = to_receipt(ev)
    assert r["contract"] == to_hex(_addr(1))
    assert r["tx_nonce"] == 4 and r["block_height"] == 9
    tags = {a["k"]: a["t"] for a in r["args"]}
    assert tags == {"who": "b", "ok": "z", "n": "i", "s": "s", "ids": "a"}


def test_to_address_rejects_wrong_length():
    assert to_address("0x" + "ab" * 20) == bytes([0xAB]) * 20
    with pytest.raises(ContextError):
        to_address(b"\x01" * 19)
