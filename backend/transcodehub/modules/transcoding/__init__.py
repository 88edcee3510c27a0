"""Transcoding module.

Resolves encode profiles into deterministic variant names and runs FFmpeg.
"""

from transcodehub.modules.transcoding.profiles import ResolvedProfile, resolve, variant_name

__all__ = ["ResolvedProfile", "resolve", "variant_name"]
