# tests/test_emitter_once.py
import pytest

from bitemit import BitFieldEmitter


def test_once_fires_for_first_overlap_only(calls):
    em = BitFieldEmitter()
    em.once(0b011, calls.rec("h"))

    em.emit(0b001, "d1")
    em.emit(0b010, "d2")
    em.emit(0b010, "d3")

    assert calls == [("h", "d1", 0b001)]
    assert len(em) == 0


def test_once_dedups_within_one_emit(calls):
    em = BitFieldEmitter()
    em.once(0b11, calls.rec("h"))
    em.emit(0b11, "x")
    assert calls == [("h", "x", 0b11)]


def test_once_does_not_touch_plain_registration(calls):
    em = BitFieldEmitter()
    h = calls.rec("h")
    em.on(0b1, h).once(0b1, h)

    em.emit(0b1, 1)
    em.emit(0b1, 2)
    # the adapter is a different identity: fires once, h keeps firing
    assert calls == [("h", 1, 1), ("h", 1, 1), ("h", 2, 1)]


def test_once_adapter_exposes_wrapped(calls):
    em = BitFieldEmitter()
    h = calls.rec("h")
    em.once(0b1, h)
    (adapter,) = em.handlers(0)
    assert adapter is not h
    assert adapter.__wrapped__ is h


def test_once_can_be_cancelled_through_adapter(calls):
    em = BitFieldEmitter()
    em.once(0b1, calls.rec("h"))
    em.remove(em.handlers(0)[0])
    em.emit(0b1, None)
    assert calls == []


def test_once_handler_error_keeps_registration():
    em = BitFieldEmitter()
    hits = []

    def flaky(data, code):
        hits.append(data)
        if data == "bad":
            raise ValueError("bad")

    em.once(0b1, flaky)
    with pytest.raises(ValueError):
        em.emit(0b1, "bad")
    em.emit(0b1, "good")
    em.emit(0b1, "never")
    assert hits == ["bad", "good"]


def test_once_with_hint_registers_below_hint_only(calls):
    em = BitFieldEmitter(8)
    em.once(0b1011, calls.rec("h"), 2)
    assert len(em.handlers(0)) == 1
    assert em.handlers(3) == ()

    em.emit(0b1000, "high")
    em.emit(0b0010, "low")
    em.emit(0b0001, "again")
    assert calls == [("h", "low", 0b0010)]


def test_once_adapter_removes_itself_only_below_hint(calls):
    em = BitFieldEmitter(8)
    em.once(0b01, calls.rec("h"), 1)
    (adapter,) = em.handlers(0)
    em.on(0b100, adapter)  # out of the hint the adapter cleans up

    em.emit(0b001, 1)
    assert em.listening(adapter) == 0b100
    em.emit(0b100, 2)
    assert [c[1] for c in calls] == [1, 2]
