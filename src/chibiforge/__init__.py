"""chibiforge - transparent chibi character portraits from photos."""

__version__ = "0.1.0"

from chibiforge.core.config import ChibiforgeConfig, config
from chibiforge.core.pipeline import ChibiAsset, ChibiPipeline

__all__ = [
    "ChibiAsset",
    "ChibiPipeline",
    "ChibiforgeConfig",
    "config",
]
