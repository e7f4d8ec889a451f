# tests/conftest.py
import logging
import os

import pytest

from bitemit.core import log, metrics
from bitemit.core.metrics import start_exporter, stop_exporter


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_logging_and_metrics():
    # LOG_LEVEL / LOG_JSON / .env are honoured
    log.setup()

    interval = float(os.getenv("METRICS_INTERVAL_TEST", "1.0"))
    json_mode = log.env_flag("LOG_JSON", False)
    start_exporter(interval_sec=interval, json_mode=json_mode,
                   logger=logging.getLogger("metrics"))
    yield
    stop_exporter()


@pytest.fixture
def calls():
    """Recorder: calls.rec(name) is a handler appending (name, data, code)."""
    class _Calls(list):
        def rec(self, name):
            def handler(data, code):
                self.append((name, data, code))
            handler.__name__ = name
            return handler
    return _Calls()


@pytest.fixture
def fresh_metrics():
    metrics.reset()
    yield
    metrics.reset()
