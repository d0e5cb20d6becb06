"""Person detection across the photos of one record.

:class:`PersonScanner` asks the text model tiers to describe every person in
each photo, then merges the per-photo lists into a roster of at most
``max_persons`` people:

- a single readable photo is taken as-is (capped and labelled);
- with several photos, each new description is compared to the accepted ones
  with a pluggable duplicate check and dropped if it matches.

The default duplicate check is a cheap token-overlap heuristic over the first
60 characters of both descriptions.  It is an approximation; pass a different
``is_duplicate`` callable to use a stricter comparator.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from chibiforge.core.content import build_contents, mime_type_for, response_text
from chibiforge.core.invoker import AllModelsUnavailable, ResilientInvoker
from chibiforge.core.policy import PacingPolicy

logger = logging.getLogger(__name__)

MAX_PERSONS = 3
NO_PERSON = "NO_PERSON"
PERSON_DELIMITER = "---PERSON---"
MIN_DESCRIPTION_LENGTH = 20

ANALYSIS_PROMPT_TEMPLATE = """Analyze this photo carefully.
If there are NO people visible (only scenery/animals/buildings/diagrams), reply with exactly: {no_person}

If there ARE people visible, describe EACH person separately. For each person, write one paragraph with these details:
1. Hair: exact style (straight/wavy/curly, length, bangs), exact color
2. Clothing: specific type, exact colors, patterns, accessories
3. Skin tone (fair/light/medium/tan/dark)
4. Distinctive features: glasses, hat, scarf, jewelry, etc.
5. Position in photo (left, right, center)

IMPORTANT: Separate each person's description with the delimiter: {delimiter}
Maximum {max_persons} people. Be very specific about colors and styles. Output ONLY descriptions, no other text."""


def analysis_prompt(max_persons: int = MAX_PERSONS) -> str:
    """Analysis prompt asking for at most ``max_persons`` descriptions."""
    return ANALYSIS_PROMPT_TEMPLATE.format(
        no_person=NO_PERSON, delimiter=PERSON_DELIMITER, max_persons=max_persons
    )

DuplicateCheck = Callable[[str, str], bool]


@dataclass
class PhotoAsset:
    """A source photo loaded for one scan."""

    index: int
    path: str
    data: bytes = field(repr=False)
    mime_type: str


@dataclass(frozen=True)
class Person:
    """One distinct person detected in the photos of a record."""

    source_photo_index: int
    source_photo_path: str
    label: str
    description: str


def resolve_media_path(media_root: Path, reference: str) -> Path:
    """Map a public reference such as ``/uploads/a.jpg`` to a file path."""
    return Path(media_root) / reference.lstrip("/")


def parse_person_descriptions(text: str) -> list[str]:
    """Split a model reply into one description per person.

    Returns an empty list for the ``NO_PERSON`` sentinel or a reply shorter
    than 20 characters.  A reply without delimiters but longer than 20
    characters is a single person.
    """
    text = (text or "").strip()
    if NO_PERSON in text or len(text) < MIN_DESCRIPTION_LENGTH:
        return []

    fragments = [fragment.strip() for fragment in text.split(PERSON_DELIMITER)]
    descriptions = [fragment for fragment in fragments if len(fragment) > MIN_DESCRIPTION_LENGTH]
    if not descriptions and len(text) > MIN_DESCRIPTION_LENGTH:
        return [text]
    return descriptions


def token_overlap_duplicate(
    candidate: str,
    existing: str,
    prefix_length: int = 60,
    threshold: int = 5,
) -> bool:
    """Default duplicate check between two person descriptions.

    Both descriptions are cut to ``prefix_length`` characters and
    case-folded.  Every whitespace-separated token of the candidate that
    occurs as a substring of the existing prefix counts once; more than
    ``threshold`` hits means the same person.
    """
    candidate_prefix = candidate[:prefix_length].casefold()
    existing_prefix = existing[:prefix_length].casefold()
    overlap = sum(1 for token in candidate_prefix.split() if token in existing_prefix)
    return overlap > threshold


class PersonScanner:
    """Builds the deduplicated roster of people for a set of photos.

    Attributes:
        invoker: Text model invoker used to describe each photo.
        media_root: Directory photo references are resolved against.
        policy: Pacing between photos.
        max_persons: Roster cap.
        is_duplicate: ``(candidate, existing) -> bool`` comparator.
    """

    def __init__(
        self,
        invoker: ResilientInvoker,
        media_root: Path,
        policy: PacingPolicy | None = None,
        max_persons: int = MAX_PERSONS,
        is_duplicate: DuplicateCheck = token_overlap_duplicate,
    ) -> None:
        self.invoker = invoker
        self.media_root = Path(media_root)
        self.policy = policy or PacingPolicy()
        self.max_persons = max_persons
        self.is_duplicate = is_duplicate

    def load_photos(self, photo_locations: Sequence[str]) -> list[PhotoAsset]:
        """Read every photo that exists on disk; missing or unreadable files are skipped."""
        photos: list[PhotoAsset] = []
        for index, reference in enumerate(photo_locations):
            full_path = resolve_media_path(self.media_root, reference)
            if not full_path.is_file():
                logger.info("Photo %s not found, skipping", reference)
                continue
            try:
                data = full_path.read_bytes()
            except OSError as exc:
                logger.warning("Photo %s could not be read, skipping: %s", reference, exc)
                continue
            photos.append(
                PhotoAsset(
                    index=index,
                    path=reference,
                    data=data,
                    mime_type=mime_type_for(full_path),
                )
            )
        return photos

    def describe_persons(self, photo: PhotoAsset) -> list[str]:
        """Ask the model for one description per visible person.

        A failed call yields an empty list.
        """
        contents = build_contents(analysis_prompt(self.max_persons), photo.data, photo.mime_type)
        try:
            response = self.invoker.invoke(contents)
        except AllModelsUnavailable as exc:
            logger.warning("Person analysis failed for %s: %s", photo.path, str(exc)[:80])
            return []
        return parse_person_descriptions(response_text(response))

    def scan(self, photo_locations: Sequence[str]) -> list[Person]:
        """Return the roster of distinct people across ``photo_locations``.

        Persons are labelled ``person1``..``personN`` in acceptance order.
        """
        photos = self.load_photos(photo_locations)
        if not photos:
            return []

        if len(photos) == 1:
            photo = photos[0]
            descriptions = self.describe_persons(photo)[: self.max_persons]
            return [
                Person(photo.index, photo.path, f"person{number}", description)
                for number, description in enumerate(descriptions, start=1)
            ]

        roster: list[Person] = []
        for position, photo in enumerate(photos):
            if len(roster) >= self.max_persons:
                break

            for description in self.describe_persons(photo):
                if len(roster) >= self.max_persons:
                    break
                if any(self.is_duplicate(description, person.description) for person in roster):
                    logger.debug("Dropping duplicate person from %s", photo.path)
                    continue
                roster.append(
                    Person(photo.index, photo.path, f"person{len(roster) + 1}", description)
                )

            if position < len(photos) - 1 and len(roster) < self.max_persons:
                self.policy.pause(self.policy.photo_pacing)

        return roster
