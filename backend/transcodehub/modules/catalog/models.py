"""Asset record model.

Records are stored as camelCase JSON documents so the same item can live
in a JSON ledger, Redis or DynamoDB unchanged.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


class TranscodeFailure(BaseModel):
    """One failed transcode attempt, kept only when failure recording is on."""
    variant: str
    error: str
    at: str


class AssetRecord(BaseModel):
    """Metadata record of one uploaded asset.

    ``processed`` keeps variant names in creation order without duplicates.
    """
    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(..., alias="ownerId")
    filename: str
    processed: list[str] = Field(default_factory=list)
    uploaded_at: Optional[str] = Field(None, alias="uploadedAt")
    last_transcoded_at: Optional[str] = Field(None, alias="lastTranscodedAt")
    failures: list[TranscodeFailure] = Field(default_factory=list)

    def add_variant(self, variant_name: str) -> bool:
        """Append a variant name unless already present.

        Returns:
            True if the list changed
        """
        if variant_name in self.processed:
            return False
        self.processed.append(variant_name)
        return True

    def to_record(self) -> dict[str, Any]:
        """Serialize for a metadata store."""
        record = self.model_dump(by_alias=True, exclude_none=True)
        if not self.failures:
            record.pop("failures", None)
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "AssetRecord":
        return cls.model_validate(record)
