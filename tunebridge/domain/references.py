from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import InvalidReference


COLLECTION = "collection"
SINGLE_ITEM = "single_item"

# Share links look like https://open.spotify.com/playlist/<id>?si=...; the
# spotify:playlist:<id> URI form is accepted as well.
_COLLECTION_PATTERN = re.compile(r"playlist[/:]([a-zA-Z0-9]+)")
_ITEM_PATTERN = re.compile(r"track[/:]([a-zA-Z0-9]+)")


@dataclass(frozen=True)
class SourceReference:
    """Classified share reference: what kind of entity it names and its id."""

    kind: str
    id: str

    @property
    def is_collection(self) -> bool:
        return self.kind == COLLECTION


def parse_reference(reference: str) -> SourceReference:
    """Classify a share reference as a collection or a single item.

    The collection shape is checked first, so a reference carrying both shapes
    is treated as a collection.
    """
    reference = (reference or "").strip()
    match = _COLLECTION_PATTERN.search(reference)
    if match:
        return SourceReference(kind=COLLECTION, id=match.group(1))
    match = _ITEM_PATTERN.search(reference)
    if match:
        return SourceReference(kind=SINGLE_ITEM, id=match.group(1))
    raise InvalidReference(f"Invalid Spotify URL: {reference!r}")
