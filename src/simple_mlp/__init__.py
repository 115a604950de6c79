from .config import device, dtype

__all__ = [
    "autograd_graph",
    "handle",
    "gradients",
    "module",
    "losses",
    "optimizers",
    "train",
    "device",
    "dtype",
    "__version__"
]

def __getattr__(name):
    if name in __all__:
        import importlib
        mod = importlib.import_module(f".{name}", __name__)
        globals()[name] = mod  # cache so future lookups are fast
        return mod
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

def __dir__():
    return sorted(list(globals().keys()) + __all__)

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from . import (
        autograd_graph,
        handle,
        gradients,
        module,
        losses,
        optimizers,
        train
    )
__version__ = "0.1.0"
