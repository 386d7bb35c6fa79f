"""
Abstract Binary Decoder Interface

PAMGuard writes raw per-detection measurements into binary files. Decoding
those files is the job of an external reader; this module defines the
boundary the rest of PAMr talks to.

Key Principle: a decoder returns BinaryData holding BinaryRecords, each
tagged with its UID, detector name and originating module type. Nothing
downstream knows anything about the on-disk format.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DecoderMetadata(BaseModel):
    """Metadata about a decoder implementation."""

    decoder_id: str = Field(description="Unique decoder identifier")
    decoder_version: str = Field(description="Decoder version")
    supported_suffixes: list[str] = Field(description="File suffixes handled")
    description: str = Field(description="Decoder description")


class BinaryRecord(BaseModel):
    """A single decoded detection from a binary file."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    uid: int = Field(description="Detection UID, unique within the file")
    utc: datetime | None = Field(default=None, description="Detection time (UTC)")
    module_type: str = Field(description="Module type from the file header")
    detector_name: str = Field(description="Detector that produced the detection")
    sample_rate: int | None = Field(default=None, description="Sample rate (Hz)")
    data: dict[str, Any] = Field(
        default_factory=dict, description="Raw detector-specific fields"
    )


class BinaryData(BaseModel):
    """All records decoded from one binary file."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(description="Path the records were decoded from")
    file_name: str = Field(description="Binary file name as PAMGuard records it")
    module_type: str = Field(description="Module type from the file header")
    records: list[BinaryRecord] = Field(default_factory=list)

    @property
    def uids(self) -> list[int]:
        """UIDs of all records, in file order."""
        return [record.uid for record in self.records]

    def with_records(self, records: Iterable[BinaryRecord]) -> "BinaryData":
        """Return a copy holding a different record list."""
        return self.model_copy(update={"records": list(records)})

    def __len__(self) -> int:
        return len(self.records)


class BinaryDecoder(ABC):
    """
    Abstract base class for binary file decoders.

    Usage Example:
        class PgdfDecoder(BinaryDecoder):
            def get_metadata(self):
                return DecoderMetadata(decoder_id="pgdf", ...)

            def decode(self, path, keep_uids=None):
                return BinaryData(path=path, file_name=path.name, ...)
    """

    def __init__(self) -> None:
        self._metadata = self.get_metadata()

    @abstractmethod
    def get_metadata(self) -> DecoderMetadata:
        """Return metadata about this decoder."""
        pass

    @abstractmethod
    def decode(
        self, path: Path, keep_uids: Iterable[int] | None = None
    ) -> BinaryData:
        """
        Read all records from a binary file.

        Args:
            path: Path to the binary file
            keep_uids: If given, only records with these UIDs are returned

        Returns:
            BinaryData with records in file order

        Raises:
            DecoderError: If the file cannot be decoded
        """
        pass

    def can_decode(self, path: Path) -> bool:
        """Check whether this decoder handles the given file, by suffix."""
        name = Path(path).name.lower()
        return any(name.endswith(suffix) for suffix in self.supported_suffixes)

    @property
    def metadata(self) -> DecoderMetadata:
        return self._metadata

    @property
    def decoder_id(self) -> str:
        return self._metadata.decoder_id

    @property
    def supported_suffixes(self) -> list[str]:
        return self._metadata.supported_suffixes

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.decoder_id}>"
