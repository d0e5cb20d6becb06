"""Retry counts and pacing delays for calls to the generative model service.

Every sleep the pipeline performs goes through a :class:`PacingPolicy`, so the
timing of a run is described by one value object instead of literals spread
across the invoker, scanner, synthesizer and orchestrator.  Tests use
:meth:`PacingPolicy.immediate` to run the same control flow without waiting.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chibiforge.core.config import ChibiforgeConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PacingPolicy:
    """Fixed retry counts and delays (seconds) used by every pipeline stage.

    Attributes:
        tier_attempts: Attempts per model tier before falling through.
        rate_limit_backoff: Sleep before retrying a rate-limited tier.
        photo_pacing: Sleep between photos during a multi-photo scan.
        synthesis_retries: Extra synthesis attempts after the first one.
        synthesis_retry_delay: Sleep between synthesis attempts.
        synthesis_rate_limit_delay: Additional sleep after a rate-limited
            synthesis attempt.
        person_pacing: Sleep between persons in one pipeline run.
        record_pacing: Sleep between records during a backfill.
        sleep: Callable performing the actual wait.
    """

    tier_attempts: int = 2
    rate_limit_backoff: float = 2.0
    photo_pacing: float = 1.5
    synthesis_retries: int = 2
    synthesis_retry_delay: float = 3.0
    synthesis_rate_limit_delay: float = 4.0
    person_pacing: float = 3.0
    record_pacing: float = 5.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.tier_attempts < 1:
            raise ValueError(f"tier_attempts must be >= 1, got {self.tier_attempts}")
        if self.synthesis_retries < 0:
            raise ValueError(f"synthesis_retries must be >= 0, got {self.synthesis_retries}")

    @property
    def synthesis_attempts(self) -> int:
        return self.synthesis_retries + 1

    def pause(self, seconds: float) -> None:
        """Block for ``seconds`` using the configured sleeper (no-op for 0)."""
        if seconds > 0:
            logger.debug("Pacing for %.1fs", seconds)
            self.sleep(seconds)

    @classmethod
    def from_config(cls, config: ChibiforgeConfig) -> PacingPolicy:
        """Build a policy from the pacing fields of a configuration."""
        return cls(
            rate_limit_backoff=config.rate_limit_backoff,
            photo_pacing=config.photo_pacing,
            synthesis_retries=config.synthesis_retries,
            synthesis_retry_delay=config.synthesis_retry_delay,
            synthesis_rate_limit_delay=config.synthesis_rate_limit_delay,
            person_pacing=config.person_pacing,
            record_pacing=config.record_pacing,
        )

    @classmethod
    def immediate(cls, sleep: Callable[[float], None] | None = None) -> PacingPolicy:
        """Same retry counts, every delay zero.

        Args:
            sleep: Optional recorder; only called for non-zero delays, so
                it is never called by an immediate policy unless the
                caller replaces individual delays afterwards.
        """
        policy = cls(
            rate_limit_backoff=0.0,
            photo_pacing=0.0,
            synthesis_retry_delay=0.0,
            synthesis_rate_limit_delay=0.0,
            person_pacing=0.0,
            record_pacing=0.0,
        )
        if sleep is not None:
            policy = replace(policy, sleep=sleep)
        return policy
