"""
JSON Binary Dump Decoder

Reads PAMGuard binary data that has been exported to JSON, one file per
binary file. The dump keeps the original binary file name with a ".json"
suffix appended (e.g. "Click_Detector_Clicks_20190101_000000.pgdf.json").

File layout:
    {
        "fileInfo": {
            "moduleType": "Click Detector",
            "moduleName": "Click Detector",
            "streamName": "Clicks"
        },
        "data": [
            {"UID": 1, "UTC": "2019-01-01 00:05:00.000", ...}
        ]
    }
"""

import json
import logging

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import numpy as np

from pamr.binaries.base import BinaryData, BinaryDecoder, BinaryRecord, DecoderMetadata
from pamr.errors import DecoderError

logger = logging.getLogger(__name__)


def _parse_utc(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        # PAMGuard millisecond timestamps
        return datetime.fromtimestamp(value / 1000.0, tz=UTC)
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _field_value(value: Any) -> Any:
    """Numeric lists (waveforms, contours) become arrays; other values pass through."""
    if isinstance(value, list) and value:
        try:
            array = np.asarray(value)
        except ValueError:
            # ragged nested lists
            return value
        if array.dtype.kind in "iuf":
            return array
    return value


def detector_name_for(file_info: dict[str, Any]) -> str:
    """
    Build the detector name for a binary file from its header.

    An explicit "detectorName" wins; otherwise module name and stream name
    are joined, with spaces replaced by underscores.
    """
    explicit = file_info.get("detectorName")
    if explicit:
        return str(explicit)
    parts = [str(file_info.get(key, "")).strip() for key in ("moduleName", "streamName")]
    return "_".join(part for part in parts if part).replace(" ", "_")


class JsonBinaryDecoder(BinaryDecoder):
    """Decoder for JSON exports of PAMGuard binary files."""

    DECODER_ID = "json"

    def get_metadata(self) -> DecoderMetadata:
        return DecoderMetadata(
            decoder_id=self.DECODER_ID,
            decoder_version="1.0.0",
            supported_suffixes=[".json"],
            description="PAMGuard binary data exported to JSON",
        )

    def decode(
        self, path: Path, keep_uids: Iterable[int] | None = None
    ) -> BinaryData:
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                content = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DecoderError(f"Failed to read binary dump {path}: {e}", str(path)) from e

        if not isinstance(content, dict):
            raise DecoderError(f"Binary dump {path} is not a JSON object", str(path))

        file_info = content.get("fileInfo") or {}
        module_type = str(file_info.get("moduleType", "")).strip()
        detector_name = detector_name_for(file_info)
        wanted = None if keep_uids is None else {int(uid) for uid in keep_uids}

        records = []
        try:
            for item in content.get("data", []):
                uid = int(item["UID"])
                if wanted is not None and uid not in wanted:
                    continue
                fields = {
                    k: _field_value(v) for k, v in item.items() if k not in ("UID", "UTC")
                }
                records.append(
                    BinaryRecord(
                        uid=uid,
                        utc=_parse_utc(item.get("UTC")),
                        module_type=module_type,
                        detector_name=detector_name,
                        data=fields,
                    )
                )
        except (KeyError, TypeError, ValueError) as e:
            raise DecoderError(f"Malformed record in {path}: {e}", str(path)) from e

        logger.debug(f"Decoded {len(records)} record(s) from {path.name}")

        file_name = path.name
        if file_name.lower().endswith(".json"):
            file_name = file_name[: -len(".json")]

        return BinaryData(
            path=path, file_name=file_name, module_type=module_type, records=records
        )
