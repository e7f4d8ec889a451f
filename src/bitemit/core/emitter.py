# src/bitemit/core/emitter.py
from __future__ import annotations

import itertools
from contextlib import nullcontext
from typing import Callable, Dict, Generic, Iterable, Optional, Tuple, TypeVar

from bitemit.core import log
from bitemit.core.bits import iter_bits
from bitemit.core.metrics import Timer, gauge_set, inc

T = TypeVar("T")

Handler = Callable[[T, int], None]

_seq = itertools.count(1)


def _fn_name(fn) -> str:
    return getattr(fn, "__name__", repr(fn))


class BitFieldEmitter(Generic[T]):
    """
    Event emitter that uses bit fields as event codes, so one call can
    listen on (or fire) several channels at once. Channel i is bit i.

    Handlers are matched by identity, not equality. Note that every
    ``obj.method`` access builds a new bound method: keep the reference you
    registered if you want to remove it later.

    The handler table has no lock. Sharing one emitter between threads is
    the caller's job to serialize.

    Without a ``name`` each emitter gets its own ``bitemit.emitter.<n>``,
    used as logger name and as the ``emitter`` metrics label.

    Example:
        em.on(0b011, fn)
        em.emit(0b001, ...)  # fires
        em.emit(0b100, ...)  # does not fire
        em.emit(0b110, ...)  # fires
    """

    def __init__(self, max_bits: int = 32, *, name: Optional[str] = None, metrics: bool = True):
        if isinstance(max_bits, bool) or not isinstance(max_bits, int):
            raise TypeError(f"max_bits must be an int, got {type(max_bits).__name__}")
        if max_bits <= 0:
            raise ValueError("max_bits must be > 0")
        self.max_bits = max_bits
        self.name = name or f"bitemit.emitter.{next(_seq)}"
        self.metrics = bool(metrics)
        self.l = log.get(self.name)
        # one slot per bit, id(handler) -> handler, insertion ordered
        self._handlers: Tuple[Dict[int, Handler], ...] = tuple({} for _ in range(max_bits))
        # id(handler) -> number of slots holding it
        self._slots_of: Dict[int, int] = {}

    def _span(self, bits_hint: Optional[int]) -> int:
        if bits_hint is None:
            return self.max_bits
        return max(0, min(bits_hint, self.max_bits))

    def _drop(self, slot: Dict[int, Handler], handler: Handler) -> bool:
        key = id(handler)
        if slot.get(key) is not handler:
            return False
        del slot[key]
        left = self._slots_of[key] - 1
        if left:
            self._slots_of[key] = left
        else:
            del self._slots_of[key]
        return True

    def _changed(self) -> None:
        if self.metrics:
            gauge_set("emitter_handlers", float(len(self._slots_of)), emitter=self.name)

    # -------------------- registration --------------------

    def on(self, code: int, handler: Handler, bits_hint: Optional[int] = None) -> "BitFieldEmitter[T]":
        """
        Call ``handler(data, code)`` for every emitted code sharing at least
        one bit with ``code``. Registering twice on the same bit is a no-op.
        """
        key = id(handler)
        added = 0
        for bit in iter_bits(code, self._span(bits_hint)):
            slot = self._handlers[bit]
            if key not in slot:
                slot[key] = handler
                added += 1
        if added:
            self._slots_of[key] = self._slots_of.get(key, 0) + added
            self._changed()
        self.l.debug("on code=%#x fn=%s", code, _fn_name(handler))
        return self

    def remove(self, handler: Handler, bits_hint: Optional[int] = None) -> "BitFieldEmitter[T]":
        """Remove ``handler`` from every bit, whatever code it was added with."""
        removed = False
        for slot in self._handlers[: self._span(bits_hint)]:
            removed = self._drop(slot, handler) or removed
        if removed:
            self._changed()
        self.l.debug("remove fn=%s", _fn_name(handler))
        return self

    def remove_group(self, handlers: Iterable[Handler], bits_hint: Optional[int] = None) -> "BitFieldEmitter[T]":
        """Remove every handler of ``handlers`` from every bit in one pass."""
        group = list(handlers)
        removed = False
        for slot in self._handlers[: self._span(bits_hint)]:
            for handler in group:
                removed = self._drop(slot, handler) or removed
        if removed:
            self._changed()
        self.l.debug("remove_group n=%d", len(group))
        return self

    removeGroup = remove_group

    def once(self, code: int, handler: Handler, bits_hint: Optional[int] = None) -> "BitFieldEmitter[T]":
        """
        Like ``on``, but after its first call the handler is dropped from
        every bit below ``bits_hint``.
        """
        def once_handler(data: T, fired: int) -> None:
            handler(data, fired)
            self.remove(once_handler, bits_hint)

        once_handler.__wrapped__ = handler  # type: ignore[attr-defined]
        once_handler.__name__ = f"once({_fn_name(handler)})"
        return self.on(code, once_handler, bits_hint)

    # -------------------- dispatch --------------------

    def emit(self, code: int, data: T, bits_hint: Optional[int] = None) -> "BitFieldEmitter[T]":
        """
        Call every handler sharing at least one bit with ``code``, each at
        most once, lowest bit first. Handlers get the full ``code``.

        A slot is walked live: handlers removed before their turn are
        skipped, handlers added while it is walked are called in this emit.
        A handler that raises stops the emit and the error reaches the caller.
        """
        # keeps the handlers alive so their ids stay unique until we return
        called: Dict[int, Handler] = {}
        delivered = 0
        timer = Timer("emitter_emit_ms", emitter=self.name) if self.metrics else nullcontext()
        try:
            with timer:
                for bit in iter_bits(code, self._span(bits_hint)):
                    slot = self._handlers[bit]
                    while True:
                        # first entry in insertion order not called yet
                        handler = next((h for k, h in slot.items() if called.get(k) is not h), None)
                        if handler is None:
                            break
                        called[id(handler)] = handler
                        handler(data, code)
                        delivered += 1
        finally:
            if self.metrics:
                inc("emitter_emit_total", 1, emitter=self.name)
                inc("emitter_deliver_total", delivered, emitter=self.name)
        return self

    # -------------------- introspection --------------------

    def handlers(self, bit: int) -> Tuple[Handler, ...]:
        """Handlers listening on ``bit``, in registration order."""
        if not 0 <= bit < self.max_bits:
            return ()
        return tuple(self._handlers[bit].values())

    def listening(self, handler: Handler) -> int:
        """Mask of the bits ``handler`` is currently registered on."""
        key = id(handler)
        code = 0
        for bit, slot in enumerate(self._handlers):
            if slot.get(key) is handler:
                code |= 1 << bit
        return code

    def __len__(self) -> int:
        return len(self._slots_of)

    def __repr__(self) -> str:
        return f"<BitFieldEmitter name={self.name!r} max_bits={self.max_bits} handlers={len(self)}>"
