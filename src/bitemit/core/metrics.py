# src/bitemit/core/metrics.py
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from statistics import mean
from typing import Any, Deque, Dict, List, Optional, Tuple

LabelKey = Tuple[Tuple[str, str], ...]  # sorted (k, v) pairs


def _labels_key(labels: Dict[str, Any] | None) -> LabelKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _pct(sorted_vals: List[float], q: float) -> float:
    if not sorted_vals:
        return 0.0
    idx = max(0, min(len(sorted_vals) - 1, int(round((len(sorted_vals) - 1) * q))))
    return sorted_vals[idx]


# ---------------- Metric types ----------------

class Counter:
    kind = "counter"

    def __init__(self, name: str, labels: LabelKey):
        self.name = name
        self.labels = labels
        self._value = 0.0
        self._lock = threading.Lock()

    def inc(self, n: float = 1.0) -> None:
        with self._lock:
            self._value += n

    def value(self) -> float:
        with self._lock:
            return self._value


class Gauge(Counter):
    kind = "gauge"

    def set(self, v: float) -> None:
        with self._lock:
            self._value = float(v)


class Histogram:
    kind = "hist"

    def __init__(self, name: str, labels: LabelKey, maxlen: int = 2048):
        self.name = name
        self.labels = labels
        self._values: Deque[float] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def observe(self, v: float) -> None:
        with self._lock:
            self._values.append(float(v))

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            vals = sorted(self._values)
        if not vals:
            return {"count": 0, "min": 0.0, "max": 0.0, "mean": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
        return {
            "count": float(len(vals)),
            "min": vals[0],
            "max": vals[-1],
            "mean": mean(vals),
            "p50": _pct(vals, 0.50),
            "p90": _pct(vals, 0.90),
            "p99": _pct(vals, 0.99),
        }


# ---------------- Registry ----------------

class _Registry:
    _types = {"counter": Counter, "gauge": Gauge, "hist": Histogram}

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._metrics: Dict[Tuple[str, str, LabelKey], Any] = {}

    def get(self, kind: str, name: str, labels: Dict[str, Any] | None):
        key = (kind, name, _labels_key(labels))
        with self._lock:
            m = self._metrics.get(key)
            if m is None:
                m = self._types[kind](name, key[2])
                self._metrics[key] = m
            return m

    def find(self, kind: str, name: str, labels: Dict[str, Any] | None):
        with self._lock:
            return self._metrics.get((kind, name, _labels_key(labels)))

    def items(self) -> List[Any]:
        with self._lock:
            return list(self._metrics.values())

    def clear(self) -> None:
        with self._lock:
            self._metrics.clear()


_REG = _Registry()

# ---------------- Public API ----------------

def inc(name: str, n: float = 1.0, **labels: Any) -> None:
    _REG.get("counter", name, labels).inc(n)


def gauge_set(name: str, v: float, **labels: Any) -> None:
    _REG.get("gauge", name, labels).set(v)


def observe_hist(name: str, v: float, **labels: Any) -> None:
    _REG.get("hist", name, labels).observe(v)


def value(name: str, **labels: Any) -> float:
    """Current counter (or gauge) value, 0.0 if never recorded."""
    m = _REG.find("counter", name, labels) or _REG.find("gauge", name, labels)
    return 0.0 if m is None else m.value()


def reset() -> None:
    """Forget every metric (tests)."""
    _REG.clear()


class Timer:
    """Context manager: observe elapsed ms into a histogram, also on error."""
    def __init__(self, hist_name: str, **labels: Any) -> None:
        self.hist_name = hist_name
        self.labels = labels
        self._t0 = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        observe_hist(self.hist_name, (time.perf_counter() - self._t0) * 1000.0, **self.labels)
        return False


def snapshot() -> dict:
    out: Dict[str, list] = {"counters": [], "gauges": [], "hists": []}
    for m in _REG.items():
        row = {"name": m.name, "labels": dict(m.labels)}
        if m.kind == "hist":
            out["hists"].append({**row, **m.snapshot()})
        else:
            out[m.kind + "s"].append({**row, "value": m.value()})
    return out


# ---------------- Exporter (log every N seconds) ----------------

def _log_snapshot(log: logging.Logger, json_mode: bool) -> None:
    snap = snapshot()
    if json_mode:
        for kind in ("counters", "gauges", "hists"):
            for row in snap[kind]:
                log.info({"type": kind[:-1], **row})
        return
    for row in snap["counters"]:
        log.info(f"[ctr] {row['name']} {row['labels']} value={row['value']:.0f}")
    for row in snap["gauges"]:
        log.info(f"[gauge] {row['name']} {row['labels']} value={row['value']:.3f}")
    for row in snap["hists"]:
        log.info(
            f"[hist] {row['name']} {row['labels']} "
            f"n={int(row['count'])} p50={row['p50']:.3f} p99={row['p99']:.3f} max={row['max']:.3f}"
        )


class _Exporter(threading.Thread):
    def __init__(self, interval_sec: float, json_mode: bool, logger: Optional[logging.Logger]):
        super().__init__(name="metrics-exporter", daemon=True)
        self.interval = float(interval_sec)
        self.json_mode = bool(json_mode)
        self.log = logger or logging.getLogger("metrics")
        self._stop_evt = threading.Event()

    def run(self) -> None:
        while not self._stop_evt.wait(max(0.5, self.interval)):
            _log_snapshot(self.log, self.json_mode)

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_evt.set()
        self.join(timeout=timeout)


_EXPORTER: Optional[_Exporter] = None


def start_exporter(interval_sec: float = 5.0, json_mode: bool = False, logger: Optional[logging.Logger] = None) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        return
    _EXPORTER = _Exporter(interval_sec, json_mode, logger)
    _EXPORTER.start()


def stop_exporter(timeout: float = 1.0) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        _EXPORTER.stop(timeout=timeout)
        _EXPORTER = None


def force_emit(logger: Optional[logging.Logger] = None, json_mode: bool = False) -> None:
    """Log a snapshot right now (tests, shutdown hooks)."""
    _log_snapshot(logger or logging.getLogger("metrics"), json_mode)
