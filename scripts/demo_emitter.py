# scripts/demo_emitter.py
import os

from bitemit import BitFieldEmitter, mask
from bitemit.core import log
from bitemit.core.metrics import force_emit, start_exporter, stop_exporter
from bitemit.wire_config import load_settings

KEY, MOUSE, RESIZE = mask(0), mask(1), mask(2)


def main():
    settings = load_settings()
    log.setup(settings.log_level, settings.log_json)
    start_exporter(interval_sec=float(os.getenv("METRICS_INTERVAL", "5")),
                   json_mode=settings.log_json)
    lg = log.get("demo")

    em: BitFieldEmitter[dict] = BitFieldEmitter(settings.max_bits, name="demo.input",
                                                metrics=settings.metrics)

    def on_input(data, code):
        lg.info("input code=%#05b data=%s", code, data)

    def on_first_resize(data, code):
        lg.info("first resize %s", data)

    em.on(KEY | MOUSE, on_input).once(RESIZE, on_first_resize)

    em.emit(KEY, {"key": "a"})
    em.emit(KEY | MOUSE, {"key": "b", "x": 3})  # on_input fires once
    em.emit(RESIZE, {"w": 80})
    em.emit(RESIZE, {"w": 120})                 # once handler is gone

    em.remove(on_input).emit(KEY, {"key": "c"})  # nothing listens

    force_emit(json_mode=settings.log_json)
    stop_exporter()


if __name__ == "__main__":
    main()
