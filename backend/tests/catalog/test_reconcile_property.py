"""Property-based tests for variant provenance reconciliation."""

from datetime import datetime, timezone

from hypothesis import given, settings, strategies as st

from transcodehub.core.storage import StoredObject
from transcodehub.modules.catalog.reconcile import (
    Inference,
    Provenance,
    infer_original,
    known_upload_stems,
    reconcile_listing,
    split_object_key,
)
from transcodehub.modules.transcoding.models import EncodeProfile, QualityPreset, TargetScale
from transcodehub.modules.transcoding.profiles import variant_name


stem_strategy = st.from_regex(r"\A[a-z][a-z0-9]{0,10}\Z")
owner_strategy = st.from_regex(r"\A[a-z]{1,8}\Z")
profile_strategy = st.builds(
    EncodeProfile,
    preset=st.sampled_from(list(QualityPreset)),
    scale=st.sampled_from(list(TargetScale)),
    enhance=st.booleans(),
)


def obj(key: str, size: int = 10) -> StoredObject:
    return StoredObject(key=key, size=size, last_modified=datetime(2024, 1, 1, tzinfo=timezone.utc))


class TestInferOriginal:
    """Name-based inference."""

    def test_matches_known_upload(self) -> None:
        inference = infer_original("clip_medium.mp4", known_upload_stems(["clip.mp4"]))

        assert inference.original == "clip.mp4"
        assert inference.tag == "medium"
        assert inference.provenance == Provenance.MATCHED

    def test_orphan_falls_back_to_stem(self) -> None:
        inference = infer_original("mystery_fast.mp4", known_upload_stems(["clip.mp4"]))

        assert inference.original == "mystery_fast"
        assert inference.tag == ""
        assert inference.provenance == Provenance.FALLBACK

    def test_matches_timestamped_upload(self) -> None:
        stems = known_upload_stems(["1700000000000_clip.mp4"])
        inference = infer_original("clip_slow_1080p_60fps_enh.mp4", stems)

        assert inference.original == "1700000000000_clip.mp4"
        assert inference.tag == "slow_1080p_60fps_enh"

    def test_underscored_upload_name(self) -> None:
        stems = known_upload_stems(["1700000000000_my_trip.mov"])
        inference = infer_original("my_trip_fast_720p.webm", stems)

        assert inference.original == "1700000000000_my_trip.mov"
        assert inference.tag == "fast_720p"

    def test_leftmost_boundary_wins(self) -> None:
        stems = known_upload_stems(["clip.mp4", "clip_medium.mp4"])
        inference = infer_original("clip_medium_fast.mp4", stems)

        assert inference.original == "clip.mp4"
        assert inference.tag == "medium_fast"

    def test_latest_upload_wins_for_shared_stem(self) -> None:
        stems = known_upload_stems(["1700000000001_clip.mp4", "1700000000000_clip.mp4"])

        assert infer_original("clip_medium.mp4", stems).original == "1700000000001_clip.mp4"

    def test_name_without_separator_falls_back(self) -> None:
        inference = infer_original("plain.mp4", known_upload_stems(["plain.mp4"]))

        assert inference == Inference("plain", "", Provenance.FALLBACK)

    @given(stem=stem_strategy, profile=profile_strategy)
    @settings(max_examples=100)
    def test_every_generated_variant_is_matched(self, stem: str, profile: EncodeProfile) -> None:
        """**Property: Reconciliation recovers the parent**

        A variant named by the naming convention is always matched back to
        the upload it was made from.
        """
        upload = f"1700000000000_{stem}.mp4"
        name = variant_name(upload, profile)

        inference = infer_original(name, known_upload_stems([upload]))

        assert inference.provenance == Provenance.MATCHED
        assert inference.original == upload

    @given(stem=stem_strategy, tag=st.from_regex(r"\A[a-z0-9_]{0,10}\Z"))
    @settings(max_examples=100)
    def test_without_uploads_everything_falls_back(self, stem: str, tag: str) -> None:
        """**Property: Reconciliation fallback**"""
        name = f"{stem}_{tag}.mp4" if tag else f"{stem}.mp4"
        inference = infer_original(name, {})

        assert inference.provenance == Provenance.FALLBACK
        assert inference.original == name[:-4]
        assert inference.tag == ""


class TestReconcileListing:
    """Joining processed objects against uploads."""

    def test_catalog_link_is_preferred(self) -> None:
        variants = [obj("processed/alice/clip_medium.mp4")]
        uploads = [obj("uploads/alice/1700000000000_clip.mp4"), obj("uploads/alice/clip.mp4")]
        links = {("alice", "clip_medium.mp4"): "1700000000000_clip.mp4"}

        [entry] = reconcile_listing(variants, uploads, links)

        assert entry.original == "1700000000000_clip.mp4"
        assert entry.tag == "medium"
        assert entry.provenance == Provenance.CATALOG

    def test_matching_is_per_owner(self) -> None:
        variants = [obj("processed/alice/clip_medium.mp4"), obj("processed/bob/clip_medium.mp4")]
        uploads = [obj("uploads/alice/clip.mp4")]

        alice, bob = reconcile_listing(variants, uploads)

        assert (alice.owner, alice.original, alice.provenance) == ("alice", "clip.mp4", Provenance.MATCHED)
        assert (bob.owner, bob.original, bob.provenance) == ("bob", "clip_medium", Provenance.FALLBACK)

    def test_malformed_keys_are_skipped(self) -> None:
        variants = [
            obj("processed/alice/"),
            obj("processed/alice/nested/clip_medium.mp4"),
            obj("uploads/alice/clip.mp4"),
            obj("processed/alice/clip_fast.mp4"),
        ]

        entries = reconcile_listing(variants, [])

        assert [e.name for e in entries] == ["clip_fast.mp4"]

    def test_entry_serialization(self) -> None:
        [entry] = reconcile_listing([obj("processed/alice/mystery_fast.mp4", size=42)], [])

        assert entry.to_dict() == {
            "name": "mystery_fast.mp4",
            "owner": "alice",
            "original": "mystery_fast",
            "tag": "",
            "provenance": "fallback",
            "size": 42,
            "lastModified": "2024-01-01T00:00:00+00:00",
        }

    @given(
        owners=st.lists(owner_strategy, min_size=1, max_size=4, unique=True),
        stems=st.lists(stem_strategy, min_size=1, max_size=4, unique=True),
    )
    @settings(max_examples=100)
    def test_one_entry_per_variant_in_listing_order(self, owners: list[str], stems: list[str]) -> None:
        variants = [obj(f"processed/{o}/{s}_medium.mp4") for o in owners for s in stems]
        uploads = [obj(f"uploads/{owners[0]}/{s}.mp4") for s in stems]

        entries = reconcile_listing(variants, uploads)

        assert [f"processed/{e.owner}/{e.name}" for e in entries] == [v.key for v in variants]
        for entry in entries:
            expected = Provenance.MATCHED if entry.owner == owners[0] else Provenance.FALLBACK
            assert entry.provenance == expected


class TestSplitObjectKey:
    def test_valid_key(self) -> None:
        ref = split_object_key("uploads/alice/clip.mp4")

        assert (ref.area, ref.owner, ref.name) == ("uploads", "alice", "clip.mp4")

    def test_invalid_keys(self) -> None:
        for key in ("uploads/alice/", "uploads/clip.mp4", "a/b/c/d", "", "uploads//clip.mp4"):
            assert split_object_key(key) is None
