"""Encode profile value types and encoder lookup tables.

The tables here are pure data: adjusting a CRF value or a codec never
touches the naming logic in ``profiles``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ContainerFormat(str, Enum):
    """Supported output containers."""
    MP4 = "mp4"
    WEBM = "webm"
    AVI = "avi"


class QualityPreset(str, Enum):
    """Speed/quality trade-off of the encode."""
    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"


class TargetScale(str, Enum):
    """Output frame size."""
    SOURCE = "source"
    RES_1080P = "1080p"
    RES_720P = "720p"


SOURCE = "source"

# Scale dimensions mapping
SCALE_DIMENSIONS = {
    TargetScale.RES_1080P: (1920, 1080),
    TargetScale.RES_720P: (1280, 720),
}


@dataclass(frozen=True)
class EncodeProfile:
    """Normalized, immutable set of encoding parameters."""
    format: ContainerFormat = ContainerFormat.MP4
    preset: QualityPreset = QualityPreset.MEDIUM
    scale: TargetScale = TargetScale.SOURCE
    fps: Optional[float] = None  # None keeps the source frame rate
    enhance: bool = False


@dataclass(frozen=True)
class CodecSettings:
    """Codec choice and quality knob for one container format."""
    video_codec: str
    audio_codec: str
    quality_flag: str
    quality: dict
    extra_options: tuple = ()
    passes_preset: bool = False


CODEC_TABLE = {
    ContainerFormat.MP4: CodecSettings(
        video_codec="libx264",
        audio_codec="aac",
        quality_flag="-crf",
        quality={QualityPreset.FAST: 24, QualityPreset.MEDIUM: 23, QualityPreset.SLOW: 21},
        extra_options=("-movflags", "+faststart"),
        passes_preset=True,
    ),
    ContainerFormat.WEBM: CodecSettings(
        video_codec="libvpx-vp9",
        audio_codec="libopus",
        quality_flag="-crf",
        quality={QualityPreset.FAST: 34, QualityPreset.MEDIUM: 32, QualityPreset.SLOW: 28},
        extra_options=("-b:v", "0"),
    ),
    ContainerFormat.AVI: CodecSettings(
        video_codec="mpeg4",
        audio_codec="libmp3lame",
        quality_flag="-qscale:v",
        quality={QualityPreset.FAST: 5, QualityPreset.MEDIUM: 4, QualityPreset.SLOW: 3},
    ),
}

# Mild brightness/contrast/gamma lift applied when enhance is set
ENHANCE_FILTER = "eq=brightness=0.02:contrast=1.08:gamma=1.04"


@dataclass(frozen=True)
class EncoderDirectives:
    """Concrete encoder settings derived from an EncodeProfile."""
    video_codec: str
    audio_codec: str
    output_options: tuple[str, ...]
    size: Optional[tuple[int, int]] = None
    frame_rate: Optional[float] = None
    video_filters: tuple[str, ...] = ()
