"""Core chibi generation pipeline.

This package holds every stage of turning photos into chibi portraits:

- **config.py**: Configuration using Pydantic Settings (``CHIBIFORGE_`` prefix)
- **policy.py**: Retry counts and pacing delays (:class:`PacingPolicy`)
- **content.py**: Request payloads and response readers for the model service
- **invoker.py**: Model-tier fallback (:class:`ResilientInvoker`)
- **scanner.py**: Person detection and roster deduplication
- **synthesizer.py**: Chibi image generation per person
- **segmenter.py**: White background removal and size normalisation
- **pipeline.py**: Orchestration of all stages for one record

Stages receive their collaborators through their constructors;
:meth:`ChibiPipeline.from_config` wires the production graph.
"""

from chibiforge.core.config import ChibiforgeConfig, config
from chibiforge.core.invoker import AllModelsUnavailable, ModelTiers, ResilientInvoker
from chibiforge.core.pipeline import ChibiAsset, ChibiPipeline
from chibiforge.core.policy import PacingPolicy
from chibiforge.core.scanner import Person, PersonScanner
from chibiforge.core.segmenter import SegmentationResult, remove_background
from chibiforge.core.synthesizer import ChibiSynthesizer

__all__ = [
    "AllModelsUnavailable",
    "ChibiAsset",
    "ChibiPipeline",
    "ChibiSynthesizer",
    "ChibiforgeConfig",
    "ModelTiers",
    "PacingPolicy",
    "Person",
    "PersonScanner",
    "ResilientInvoker",
    "SegmentationResult",
    "config",
    "remove_background",
]
