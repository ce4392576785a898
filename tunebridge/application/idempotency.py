import hashlib
from typing import List

from tunebridge.domain.entities import TrackDescriptor


def build_descriptor_key(descriptor: TrackDescriptor) -> str:
    """Stable key for a descriptor built from its lowercased fields."""
    title = (descriptor.title or "").strip().lower()
    artist = (descriptor.artist or "").strip().lower()
    album = (descriptor.album or "").strip().lower()
    return f"meta:{title}::{artist}::{album}"


def calculate_snapshot_hash(descriptors: List[TrackDescriptor]) -> str:
    """Calculate a stable hash for an extracted descriptor list.

    The hash is order-independent, so two extractions of the same source with
    the same tracks correlate in logs even if entries were reordered.
    """
    if not descriptors:
        return hashlib.sha256(b"empty_snapshot").hexdigest()

    keys = sorted(build_descriptor_key(d) for d in descriptors)
    snapshot_str = "\n".join(keys)
    return hashlib.sha256(snapshot_str.encode('utf-8')).hexdigest()
