from bitemit.core.bits import iter_bits, mask
from bitemit.core.emitter import BitFieldEmitter, Handler

__all__ = ["BitFieldEmitter", "Handler", "mask", "iter_bits"]

__version__ = "0.1.0"
