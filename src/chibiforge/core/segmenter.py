"""White-background removal for generated chibi images.

Generated characters are drawn on a plain white canvas and there is no alpha
channel to start from.  The cut-out is computed in four steps:

1. **Classify**: a pixel is *whitish* when its Euclidean distance from pure
   white over RGB is below ``white_threshold``.
2. **Flood fill**: a 4-connected BFS is seeded from every border pixel and
   only spreads through whitish pixels.  Reached whitish pixels become
   ``BACKGROUND``; reached non-whitish pixels become ``FOREGROUND`` and stop
   the fill; pixels never reached stay ``UNVISITED`` and are kept.  White
   regions enclosed by the subject (eye highlights, white clothing) survive
   because the fill cannot get to them.
3. **Alpha**: background pixels become transparent, except those touching a
   non-background pixel, which get ``edge_alpha`` for a soft 1 px edge.
4. **Normalise**: trim near-transparent borders and resize to a fixed height
   so every character renders at the same scale.

:func:`remove_background` never raises.  On any processing error it returns
the original bytes with ``segmented=False``; callers that care whether the
output actually has a transparent background must check that flag, since an
unmodified opaque image is otherwise indistinguishable from a cut-out in
which nothing was background.
"""

from __future__ import annotations

import io
import logging
from collections import deque
from dataclasses import dataclass
from enum import IntEnum

import numpy as np
from numpy.typing import NDArray
from PIL import Image

logger = logging.getLogger(__name__)

WHITE_THRESHOLD = 42.0
EDGE_ALPHA = 60
TRIM_THRESHOLD = 5
OUTPUT_HEIGHT = 800


class PixelLabel(IntEnum):
    """Per-pixel state of the background mask."""

    UNVISITED = 0
    BACKGROUND = 1
    FOREGROUND = 2


@dataclass(frozen=True)
class SegmentationResult:
    """Output of :func:`remove_background`.

    Attributes:
        data: PNG bytes with alpha, or the untouched input when
            ``segmented`` is False.
        segmented: Whether background removal actually ran to completion.
        error: Short description of the failure when ``segmented`` is False.
    """

    data: bytes
    segmented: bool
    error: str | None = None


def whitish_mask(rgba: NDArray[np.uint8], threshold: float = WHITE_THRESHOLD) -> NDArray[np.bool_]:
    """Return a boolean (H, W) array of background candidates.

    Fully transparent pixels count as candidates too, so an image that was
    already cut out is classified the same way on a second pass.
    """
    rgb = rgba[..., :3].astype(np.int32)
    distance_sq = ((255 - rgb) ** 2).sum(axis=-1)
    candidates = distance_sq < threshold * threshold
    return candidates | (rgba[..., 3] == 0)


def classify_background(
    rgba: NDArray[np.uint8],
    threshold: float = WHITE_THRESHOLD,
) -> NDArray[np.uint8]:
    """Label border-connected whitish pixels as background.

    Args:
        rgba: (H, W, 4) image array.
        threshold: Distance-from-white cutoff.

    Returns:
        (H, W) ``uint8`` array of :class:`PixelLabel` values.
    """
    height, width = rgba.shape[:2]
    candidates = whitish_mask(rgba, threshold).ravel().tolist()
    mask = [int(PixelLabel.UNVISITED)] * (width * height)

    queue: deque[int] = deque()
    for x in range(width):
        queue.append(x)
        queue.append((height - 1) * width + x)
    for y in range(height):
        queue.append(y * width)
        queue.append(y * width + width - 1)

    unvisited = int(PixelLabel.UNVISITED)
    background = int(PixelLabel.BACKGROUND)
    foreground = int(PixelLabel.FOREGROUND)

    while queue:
        pos = queue.popleft()
        if mask[pos] != unvisited:
            continue
        if not candidates[pos]:
            mask[pos] = foreground
            continue

        mask[pos] = background
        x = pos % width
        if x > 0 and mask[pos - 1] == unvisited:
            queue.append(pos - 1)
        if x < width - 1 and mask[pos + 1] == unvisited:
            queue.append(pos + 1)
        if pos >= width and mask[pos - width] == unvisited:
            queue.append(pos - width)
        if pos < (height - 1) * width and mask[pos + width] == unvisited:
            queue.append(pos + width)

    return np.array(mask, dtype=np.uint8).reshape(height, width)


def edge_pixels(mask: NDArray[np.uint8]) -> NDArray[np.bool_]:
    """Background pixels with at least one in-bounds non-background 4-neighbour."""
    background = mask == PixelLabel.BACKGROUND
    # Out-of-bounds neighbours are padded as background so they never count.
    padded = np.pad(background, 1, mode="constant", constant_values=True)
    touches_subject = (
        ~padded[:-2, 1:-1] | ~padded[2:, 1:-1] | ~padded[1:-1, :-2] | ~padded[1:-1, 2:]
    )
    return background & touches_subject


def apply_transparency(
    rgba: NDArray[np.uint8],
    mask: NDArray[np.uint8],
    edge_alpha: int = EDGE_ALPHA,
) -> NDArray[np.uint8]:
    """Return a copy of ``rgba`` with background cleared and edges softened.

    Non-background pixels keep the alpha they already had.
    """
    result = rgba.copy()
    alpha = result[..., 3]
    alpha[mask == PixelLabel.BACKGROUND] = 0
    alpha[edge_pixels(mask)] = edge_alpha
    return result


def trim_and_normalize(
    image: Image.Image,
    trim_threshold: int = TRIM_THRESHOLD,
    height: int = OUTPUT_HEIGHT,
) -> Image.Image:
    """Crop near-transparent borders and scale to ``height`` pixels.

    Pixels with alpha at or below ``trim_threshold`` are trimmed.  An image
    with nothing left after trimming becomes a single transparent pixel
    before scaling, so the output is a fully transparent square.
    """
    image = image.convert("RGBA")
    opaque = image.getchannel("A").point(lambda a: 255 if a > trim_threshold else 0)
    bbox = opaque.getbbox()
    if bbox is None:
        image = Image.new("RGBA", (1, 1), (0, 0, 0, 0))
    else:
        image = image.crop(bbox)

    src_width, src_height = image.size
    width = max(1, round(src_width * height / src_height))
    if (width, height) == image.size:
        return image

    # Bilinear never overshoots, so resampled opaque pixels cannot turn whitish.
    return image.resize((width, height), Image.Resampling.BILINEAR)


def remove_background(
    data: bytes,
    threshold: float = WHITE_THRESHOLD,
    edge_alpha: int = EDGE_ALPHA,
    trim_threshold: int = TRIM_THRESHOLD,
    height: int = OUTPUT_HEIGHT,
) -> SegmentationResult:
    """Cut the white background out of an encoded image.

    Args:
        data: Encoded image bytes (any format Pillow can open).
        threshold: Distance-from-white cutoff for background candidates.
        edge_alpha: Alpha for background pixels bordering the subject.
        trim_threshold: Alpha at or below which borders are trimmed.
        height: Output height in pixels.

    Returns:
        :class:`SegmentationResult` with PNG bytes, or the original bytes and
        ``segmented=False`` if anything went wrong.
    """
    try:
        with Image.open(io.BytesIO(data)) as source:
            rgba = np.array(source.convert("RGBA"), dtype=np.uint8)

        mask = classify_background(rgba, threshold)
        cut_out = Image.fromarray(apply_transparency(rgba, mask, edge_alpha))
        normalized = trim_and_normalize(cut_out, trim_threshold, height)

        buffer = io.BytesIO()
        normalized.save(buffer, format="PNG")
    except Exception as exc:
        logger.warning("Background removal failed, keeping original image: %s", str(exc)[:60])
        return SegmentationResult(data=data, segmented=False, error=str(exc)[:200])

    return SegmentationResult(data=buffer.getvalue(), segmented=True)
