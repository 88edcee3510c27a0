"""Asset/variant provenance reconstruction.

Explicit links from asset records are authoritative. When a variant has no
such link (partial metadata, objects placed by hand, migrated buckets), its
parent is inferred from the naming convention ``{base}_{tag}.{format}``:

* split the variant stem at the leftmost ``_`` whose left side is the stem
  of a known upload of the same owner -> ``matched``
* no such split -> the variant stem itself is reported as the original
  with an empty tag -> ``fallback``
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping, Optional

from transcodehub.core.storage import StoredObject
from transcodehub.modules.transcoding.profiles import asset_base_name, strip_extension

UPLOADS = "uploads"
PROCESSED = "processed"


class Provenance(str, Enum):
    """How the original of a variant was determined."""
    CATALOG = "catalog"
    MATCHED = "matched"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ObjectRef:
    """Parsed ``{area}/{owner}/{name}`` storage key."""
    area: str
    owner: str
    name: str


@dataclass(frozen=True)
class Inference:
    original: str
    tag: str
    provenance: Provenance


@dataclass(frozen=True)
class ReconciledVariant:
    """One entry of the processed listing."""
    name: str
    owner: str
    original: str
    tag: str
    provenance: Provenance
    size: Optional[int] = None
    last_modified: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "owner": self.owner,
            "original": self.original,
            "tag": self.tag,
            "provenance": self.provenance.value,
            "size": self.size,
            "lastModified": self.last_modified.isoformat() if self.last_modified else None,
        }


def split_object_key(key: str) -> Optional[ObjectRef]:
    """Parse a storage key, ignoring folder markers and foreign layouts."""
    parts = key.split("/")
    if len(parts) != 3 or not all(parts):
        return None
    return ObjectRef(area=parts[0], owner=parts[1], name=parts[2])


def known_upload_stems(upload_names: Iterable[str]) -> dict[str, str]:
    """Map every stem a variant may carry to the upload filename it came from.

    Variants are named after the upload with its timestamp prefix removed,
    so both the stripped and the exact stem are registered. Exact stems
    win; among uploads sharing a stripped stem the latest one wins.
    """
    stems: dict[str, str] = {}
    ordered = sorted(upload_names)
    for name in ordered:
        stems[asset_base_name(name)] = name
    for name in ordered:
        stems[strip_extension(name)] = name
    return stems


def infer_original(variant_name: str, known_uploads: Mapping[str, str]) -> Inference:
    """Infer the original upload of a variant from its name alone.

    Args:
        variant_name: Variant filename, e.g. ``clip_medium.mp4``
        known_uploads: Upload stem -> upload filename for the same owner

    Returns:
        Inference with the original filename, the tag and how it was found
    """
    stem = strip_extension(variant_name)

    index = stem.find("_")
    while index > 0:
        base = stem[:index]
        if base in known_uploads:
            return Inference(
                original=known_uploads[base],
                tag=stem[index + 1:],
                provenance=Provenance.MATCHED,
            )
        index = stem.find("_", index + 1)

    return Inference(original=stem, tag="", provenance=Provenance.FALLBACK)


def _catalog_inference(variant_name: str, original: str) -> Inference:
    stem = strip_extension(variant_name)
    prefix = f"{asset_base_name(original)}_"
    tag = stem[len(prefix):] if stem.startswith(prefix) else ""
    return Inference(original=original, tag=tag, provenance=Provenance.CATALOG)


def reconcile_listing(
    variant_objects: Iterable[StoredObject],
    upload_objects: Iterable[StoredObject],
    catalog_links: Optional[Mapping[tuple[str, str], str]] = None,
) -> list[ReconciledVariant]:
    """Join processed objects against uploads to resolve each variant's original.

    Args:
        variant_objects: Objects under ``processed/``
        upload_objects: Objects under ``uploads/`` visible to the same scope
        catalog_links: (owner, variant name) -> upload filename from asset records

    Returns:
        One ReconciledVariant per well-formed variant key, in listing order
    """
    catalog_links = catalog_links or {}

    uploads_by_owner: dict[str, list[str]] = {}
    for obj in upload_objects:
        ref = split_object_key(obj.key)
        if ref is None or ref.area != UPLOADS:
            continue
        uploads_by_owner.setdefault(ref.owner, []).append(ref.name)

    stems_by_owner = {
        owner: known_upload_stems(names) for owner, names in uploads_by_owner.items()
    }

    results = []
    for obj in variant_objects:
        ref = split_object_key(obj.key)
        if ref is None or ref.area != PROCESSED:
            continue

        linked = catalog_links.get((ref.owner, ref.name))
        if linked is not None:
            inference = _catalog_inference(ref.name, linked)
        else:
            inference = infer_original(ref.name, stems_by_owner.get(ref.owner, {}))

        results.append(ReconciledVariant(
            name=ref.name,
            owner=ref.owner,
            original=inference.original,
            tag=inference.tag,
            provenance=inference.provenance,
            size=obj.size,
            last_modified=obj.last_modified,
        ))

    return results
