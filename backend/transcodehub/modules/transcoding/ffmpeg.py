"""FFmpeg transcoding executor.

Runs the external encoder for one resolved profile and waits for it.
The call is blocking; services run it on the default thread pool.
"""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from typing import Optional

from transcodehub.core.exceptions import EncodeError
from transcodehub.modules.transcoding.models import EncodeProfile, EncoderDirectives
from transcodehub.modules.transcoding.profiles import encoder_directives, format_fps, variant_name

logger = logging.getLogger(__name__)

# Enough of stderr to show the actual ffmpeg error without the banner noise
STDERR_TAIL_CHARS = 2000


class Transcoder(ABC):
    """Contract the transcoding service needs from an encoder."""

    @abstractmethod
    def execute(self, input_path: str, profile: EncodeProfile, output_dir: str) -> str:
        """Encode ``input_path`` under ``profile`` into ``output_dir``.

        Returns:
            Path of the produced variant

        Raises:
            EncodeError: If the encoder fails or produces no output
        """


def _stderr_tail(stderr: Optional[str]) -> str:
    if not stderr:
        return ""
    return stderr.strip()[-STDERR_TAIL_CHARS:]


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove partial output {path}: {e}")


class FFmpegTranscoder(Transcoder):
    """FFmpeg-based video transcoder."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        """Initialize transcoder.

        Args:
            ffmpeg_path: Path to ffmpeg binary
        """
        self.ffmpeg_path = ffmpeg_path

    def build_command(
        self,
        input_path: str,
        output_path: str,
        directives: EncoderDirectives,
    ) -> list[str]:
        """Build FFmpeg command for one encode.

        Args:
            input_path: Source media file
            output_path: Destination file, overwritten if present
            directives: Codec, quality and filter settings

        Returns:
            FFmpeg command as list of arguments
        """
        cmd = [
            self.ffmpeg_path,
            "-y",  # Overwrite output
            "-hide_banner",
            "-i", input_path,
            "-c:v", directives.video_codec,
            "-c:a", directives.audio_codec,
            *directives.output_options,
        ]

        filters = []
        if directives.size:
            width, height = directives.size
            filters.append(f"scale={width}:{height}")
        filters.extend(directives.video_filters)
        if filters:
            cmd.extend(["-vf", ",".join(filters)])

        if directives.frame_rate is not None:
            cmd.extend(["-r", format_fps(directives.frame_rate)])

        cmd.append(output_path)
        return cmd

    def execute(self, input_path: str, profile: EncodeProfile, output_dir: str) -> str:
        output_path = os.path.join(output_dir, variant_name(os.path.basename(input_path), profile))
        cmd = self.build_command(input_path, output_path, encoder_directives(profile))

        logger.info(
            "Starting encode",
            extra={"input_path": input_path, "output_path": output_path, "format": profile.format.value},
        )

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                universal_newlines=True,
            )
            _, stderr = process.communicate()
        except OSError as e:
            # Missing binary lands here as FileNotFoundError
            _remove_partial(output_path)
            raise EncodeError(f"Failed to run encoder: {e}", detail=str(e)) from e

        if process.returncode != 0:
            _remove_partial(output_path)
            raise EncodeError(
                f"Encoder exited with code {process.returncode}",
                detail=_stderr_tail(stderr),
            )

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            _remove_partial(output_path)
            raise EncodeError("Encoder produced no output", detail=_stderr_tail(stderr))

        return output_path


__all__ = ["Transcoder", "FFmpegTranscoder", "STDERR_TAIL_CHARS"]
