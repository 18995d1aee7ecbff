from . import config, errors, publishers, sources, transform, types
from .emitter import Emitter, process_committed_chain
from .transform import transform as transform_block

__all__ = [
    "config",
    "errors",
    "publishers",
    "sources",
    "transform",
    "types",
    "Emitter",
    "process_committed_chain",
    "transform_block",
]
