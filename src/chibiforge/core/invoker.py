"""Model-tier fallback for generative model calls.

:class:`ResilientInvoker` turns one logical ``generate_content`` request into
a walk over an ordered chain of model tiers.  Each tier gets a bounded number
of attempts:

- **Success** returns immediately; later tiers are never touched.
- **Rate limited** (HTTP 429 / ``RESOURCE_EXHAUSTED``): sleep the policy's
  backoff and retry the same tier; once the attempts are used up, move on.
- **Any other error**: move to the next tier at once.  Bad requests and
  retired models do not fix themselves.

When every tier has failed, :class:`AllModelsUnavailable` is raised carrying
the last error seen.

The invoker owns no client state of its own.  It is built around any object
exposing ``client.models.generate_content(model=, contents=, config=)``, which
is the ``google.genai.Client`` surface; :func:`create_genai_client` builds the
real one.

Usage
-----
::

    from chibiforge.core.config import config
    from chibiforge.core.invoker import ModelTiers, ResilientInvoker, create_genai_client

    invoker = ResilientInvoker(
        create_genai_client(config),
        ModelTiers(config.text_models),
    )
    response = invoker.invoke(contents)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from chibiforge.core.policy import PacingPolicy

if TYPE_CHECKING:
    from chibiforge.core.config import ChibiforgeConfig

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = "RESOURCE_EXHAUSTED"


class AllModelsUnavailable(RuntimeError):
    """Raised when every model tier failed for one request.

    Attributes:
        last_error: The exception raised by the final attempt, or ``None``
            if no attempt was made.
    """

    def __init__(self, last_error: BaseException | None = None) -> None:
        self.last_error = last_error
        detail = _short_message(last_error) if last_error is not None else "no attempts made"
        super().__init__(f"All models are unavailable: {detail}")

    @property
    def rate_limited(self) -> bool:
        return self.last_error is not None and is_rate_limited(self.last_error)


def is_rate_limited(exc: BaseException) -> bool:
    """Return True if ``exc`` is a rate-limit (quota) failure.

    Recognises ``google.genai.errors.APIError`` (``code`` 429 or ``status``
    ``RESOURCE_EXHAUSTED``), HTTP client errors carrying ``status_code`` 429,
    and :class:`AllModelsUnavailable` whose last error was rate limited.
    """
    if isinstance(exc, AllModelsUnavailable):
        return exc.rate_limited
    for attr in ("code", "status_code", "status"):
        value = getattr(exc, attr, None)
        if value == 429 or value == RATE_LIMIT_STATUS:
            return True
    return False


def _short_message(exc: BaseException, limit: int = 80) -> str:
    return str(exc)[:limit]


class ModelTiers:
    """Immutable, non-empty ordered chain of model names.

    The first tier is the most capable model; later tiers are cheaper
    fallbacks with separate quotas.
    """

    __slots__ = ("_names",)

    def __init__(self, names: Iterable[str]) -> None:
        cleaned = tuple(name.strip() for name in names if name and name.strip())
        if not cleaned:
            raise ValueError("ModelTiers requires at least one model name")
        object.__setattr__(self, "_names", cleaned)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("ModelTiers is immutable")

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __getitem__(self, index: int) -> str:
        return self._names[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ModelTiers):
            return self._names == other._names
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._names)

    def __repr__(self) -> str:
        return f"ModelTiers({list(self._names)!r})"


class ResilientInvoker:
    """Cascades a ``generate_content`` request across model tiers.

    Attributes:
        client: Object exposing ``models.generate_content``.
        tiers: Ordered model chain tried for every request.
        policy: Attempt count per tier and rate-limit backoff.
    """

    def __init__(
        self,
        client: Any,
        tiers: ModelTiers,
        policy: PacingPolicy | None = None,
    ) -> None:
        self.client = client
        self.tiers = tiers
        self.policy = policy or PacingPolicy()

    def invoke(self, contents: Any, generation_config: Any = None) -> Any:
        """Send one request, falling through the tier chain on failure.

        Args:
            contents: Multi-part request payload (see
                :func:`chibiforge.core.content.build_contents`).
            generation_config: Optional ``config`` for the request, e.g.
                the requested response modalities.

        Returns:
            The first successful response.

        Raises:
            AllModelsUnavailable: If every tier failed.
        """
        last_error: BaseException | None = None

        for model in self.tiers:
            for attempt in range(1, self.policy.tier_attempts + 1):
                try:
                    response = self.client.models.generate_content(
                        model=model,
                        contents=contents,
                        config=generation_config,
                    )
                except Exception as exc:
                    last_error = exc
                    if not is_rate_limited(exc):
                        logger.warning(
                            "Model %s failed (%s): %s",
                            model,
                            getattr(exc, "code", None) or "unknown",
                            _short_message(exc),
                        )
                        break
                    if attempt < self.policy.tier_attempts:
                        logger.warning(
                            "Model %s rate limited, retrying in %.1fs",
                            model,
                            self.policy.rate_limit_backoff,
                        )
                        self.policy.pause(self.policy.rate_limit_backoff)
                    else:
                        logger.warning("Model %s still rate limited, trying next model", model)
                else:
                    if model != self.tiers[0]:
                        logger.info("Request served by fallback model %s", model)
                    return response

        raise AllModelsUnavailable(last_error)


def create_genai_client(config: ChibiforgeConfig) -> Any:
    """Build a ``google.genai.Client`` from the configured API key.

    Raises:
        RuntimeError: If ``CHIBIFORGE_GEMINI_API_KEY`` is not set.
    """
    if not config.gemini_api_key:
        raise RuntimeError("CHIBIFORGE_GEMINI_API_KEY is not set")

    from google import genai

    return genai.Client(api_key=config.gemini_api_key)
