"""Pydantic schemas for the transcode endpoint."""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from transcodehub.modules.transcoding.models import ContainerFormat, EncodeProfile

# Format must be a scalar; anything else is coerced to a default in profiles.resolve
RawValue = Optional[Union[bool, int, float, str]]


class TranscodeRequest(BaseModel):
    """Schema for a transcode request."""
    filename: Optional[str] = Field(None, description="Stored upload name in the caller's namespace")
    format: RawValue = Field(None, description="Container format: mp4, webm or avi")
    preset: Any = Field(None, description="fast, medium or slow")
    scale: Any = Field(None, description="source, 1080p or 720p")
    fps: Any = Field(None, description="'source' or a positive number")
    enhance: Any = Field(None, description="Apply the brightness/contrast lift")
    heavy: Any = Field(None, description="Legacy flag: slow, 1080p, 60fps, enhanced")

    def profile_params(self) -> dict[str, Any]:
        """Profile fields that were actually sent."""
        return self.model_dump(exclude={"filename"}, exclude_none=True)


class ProfileResponse(BaseModel):
    """Resolved encode profile as echoed back to the client."""
    format: ContainerFormat
    preset: str
    scale: str
    fps: Union[float, str]
    enhance: bool

    @classmethod
    def from_profile(cls, profile: EncodeProfile) -> "ProfileResponse":
        return cls(
            format=profile.format,
            preset=profile.preset.value,
            scale=profile.scale.value,
            fps=profile.fps if profile.fps is not None else "source",
            enhance=profile.enhance,
        )


class TranscodeResponse(BaseModel):
    """Schema for a completed transcode."""
    model_config = ConfigDict(populate_by_name=True)

    owner: str
    original: str
    output: str
    tag: str
    key: str
    profile: ProfileResponse
    content_type: str = Field(..., alias="contentType")
