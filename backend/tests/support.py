"""Test doubles and token helpers shared by the test modules."""

import os
import shutil
from typing import Any, Optional

from jose import jwt

from transcodehub.core.exceptions import EncodeError
from transcodehub.modules.transcoding.ffmpeg import Transcoder
from transcodehub.modules.transcoding.models import EncodeProfile
from transcodehub.modules.transcoding.profiles import variant_name

TEST_SECRET = "test-secret"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubTranscoder(Transcoder):
    """Copies the input to the variant path instead of running FFmpeg."""

    def __init__(self, fail_with: Optional[EncodeError] = None):
        self.fail_with = fail_with
        self.calls: list[tuple[str, EncodeProfile, str]] = []

    def execute(self, input_path: str, profile: EncodeProfile, output_dir: str) -> str:
        self.calls.append((input_path, profile, output_dir))
        if self.fail_with is not None:
            raise self.fail_with
        output_path = os.path.join(output_dir, variant_name(os.path.basename(input_path), profile))
        shutil.copyfile(input_path, output_path)
        return output_path


def make_token(claims: dict[str, Any], secret: str = TEST_SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_headers(owner: str, groups: Optional[list[str]] = None) -> dict[str, str]:
    claims: dict[str, Any] = {"cognito:username": owner}
    if groups is not None:
        claims["cognito:groups"] = groups
    return {"Authorization": f"Bearer {make_token(claims)}"}
