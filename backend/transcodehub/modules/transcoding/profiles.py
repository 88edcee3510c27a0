"""Encode profile resolution and deterministic variant naming.

``resolve`` turns loosely shaped transcode parameters into an immutable
EncodeProfile, its canonical tag and the concrete encoder directives.

Normalization order:

1. A truthy legacy ``heavy`` flag forces preset=slow, scale=1080p, fps=60
   and enhance=true, whatever else was sent for those four fields.
2. Otherwise unknown presets fall back to ``medium``, unknown scales to
   ``source``, and fps is kept only when it is a positive finite number.
3. An unknown container format raises UnsupportedFormatError. Nothing in
   this module performs I/O, so the failure always precedes any side effect.

The tag lists the preset, then the scale and ``{fps}fps`` when they differ
from the source, then ``enh`` when enhancement is on, joined with ``_``.
Format is carried by the file extension, so two different profiles never
share a variant name.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from transcodehub.core.exceptions import UnsupportedFormatError
from transcodehub.modules.transcoding.models import (
    CODEC_TABLE,
    ENHANCE_FILTER,
    SCALE_DIMENSIONS,
    SOURCE,
    ContainerFormat,
    EncodeProfile,
    EncoderDirectives,
    QualityPreset,
    TargetScale,
)

HEAVY_PRESET = QualityPreset.SLOW
HEAVY_SCALE = TargetScale.RES_1080P
HEAVY_FPS = 60.0

TRUTHY_STRINGS = frozenset(("true", "1", "yes", "on"))

_EXTENSION = re.compile(r"\.[^.]+$")
# Uploads are stored as "{epoch_ms}_{name}"
_UPLOAD_TIMESTAMP_PREFIX = re.compile(r"^\d{10,}_(?=.)")


@dataclass(frozen=True)
class ResolvedProfile:
    """Result of resolving raw transcode parameters."""
    profile: EncodeProfile
    tag: str
    directives: EncoderDirectives


def is_truthy(value: Any) -> bool:
    """Interpret a loosely typed flag.

    Accepts booleans, non-zero numbers and the strings true/1/yes/on.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_STRINGS
    return False


def _normalize_text(value: Any) -> str:
    return str(value).strip().lower()


def coerce_preset(value: Any) -> QualityPreset:
    try:
        return QualityPreset(_normalize_text(value))
    except ValueError:
        return QualityPreset.MEDIUM


def coerce_scale(value: Any) -> TargetScale:
    try:
        return TargetScale(_normalize_text(value))
    except ValueError:
        return TargetScale.SOURCE


def coerce_fps(value: Any) -> Optional[float]:
    """Return the frame rate as a float, or None to keep the source rate."""
    if value is None or isinstance(value, bool):
        return None
    try:
        fps = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(fps) or fps <= 0:
        return None
    return fps


def normalize_format(value: Any) -> ContainerFormat:
    """Validate the container format.

    Raises:
        UnsupportedFormatError: If the format is not mp4, webm or avi
    """
    if value is None:
        return ContainerFormat.MP4
    try:
        return ContainerFormat(_normalize_text(value))
    except ValueError:
        raise UnsupportedFormatError(value)


def build_profile(raw: Mapping[str, Any]) -> EncodeProfile:
    """Normalize raw parameters into an EncodeProfile."""
    fmt = normalize_format(raw.get("format"))

    if is_truthy(raw.get("heavy")):
        return EncodeProfile(
            format=fmt,
            preset=HEAVY_PRESET,
            scale=HEAVY_SCALE,
            fps=HEAVY_FPS,
            enhance=True,
        )

    return EncodeProfile(
        format=fmt,
        preset=coerce_preset(raw.get("preset", QualityPreset.MEDIUM.value)),
        scale=coerce_scale(raw.get("scale", TargetScale.SOURCE.value)),
        fps=coerce_fps(raw.get("fps", SOURCE)),
        enhance=is_truthy(raw.get("enhance", False)),
    )


def format_fps(fps: float) -> str:
    """Render a frame rate for tags: 60.0 -> "60", 29.97 -> "29.97"."""
    if float(fps).is_integer():
        return str(int(fps))
    # repr is the shortest string that round-trips, so distinct rates stay distinct
    return repr(float(fps))


def profile_tag(profile: EncodeProfile) -> str:
    """Build the canonical tag for a profile."""
    tokens = [profile.preset.value]
    if profile.scale != TargetScale.SOURCE:
        tokens.append(profile.scale.value)
    if profile.fps is not None:
        tokens.append(f"{format_fps(profile.fps)}fps")
    if profile.enhance:
        tokens.append("enh")
    return "_".join(tokens)


def strip_extension(name: str) -> str:
    """Drop the last extension; names that are only an extension are kept."""
    stem = _EXTENSION.sub("", name)
    return stem or name


def asset_base_name(filename: str) -> str:
    """Base name used for variants: stem without the upload timestamp prefix.

    ``1700000000000_clip.mp4`` -> ``clip``
    """
    return _UPLOAD_TIMESTAMP_PREFIX.sub("", strip_extension(filename))


def variant_name(filename: str, profile: EncodeProfile) -> str:
    """Deterministic name of the variant of ``filename`` under ``profile``."""
    return f"{asset_base_name(filename)}_{profile_tag(profile)}.{profile.format.value}"


def encoder_directives(profile: EncodeProfile) -> EncoderDirectives:
    """Map a profile onto concrete encoder settings."""
    codec = CODEC_TABLE[profile.format]

    options: list[str] = []
    if codec.passes_preset:
        options.extend(["-preset", profile.preset.value])
    options.extend([codec.quality_flag, str(codec.quality[profile.preset])])
    options.extend(codec.extra_options)

    return EncoderDirectives(
        video_codec=codec.video_codec,
        audio_codec=codec.audio_codec,
        output_options=tuple(options),
        size=SCALE_DIMENSIONS.get(profile.scale),
        frame_rate=profile.fps,
        video_filters=(ENHANCE_FILTER,) if profile.enhance else (),
    )


def resolve(raw: Mapping[str, Any]) -> ResolvedProfile:
    """Resolve raw transcode parameters.

    Args:
        raw: Mapping with any of format, preset, scale, fps, enhance, heavy

    Returns:
        ResolvedProfile with the profile, its tag and encoder directives

    Raises:
        UnsupportedFormatError: If the format is not supported
    """
    profile = build_profile(raw)
    return ResolvedProfile(
        profile=profile,
        tag=profile_tag(profile),
        directives=encoder_directives(profile),
    )
