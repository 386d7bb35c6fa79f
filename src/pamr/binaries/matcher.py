"""
Match database detections to the binary file they were recorded in.

Databases only store the binary file name, while the binary inventory holds
full paths. Names are not guaranteed unique across folders, so when several
files match the name we probe their contents for the first requested UID.
"""

import logging

from collections.abc import Sequence
from pathlib import Path

import pandas as pd

from pamr.binaries.base import BinaryData, BinaryDecoder, BinaryRecord
from pamr.binaries.registry import resolve_decoder
from pamr.constants import COL_BINARY_FILE, COL_ROW_SEQUENCE, COL_SAMPLE_RATE, COL_UID

logger = logging.getLogger(__name__)


def find_candidates(binary_file: str, bin_list: Sequence[str | Path]) -> list[Path]:
    """Return every known binary path containing the file name as a substring."""
    return [Path(path) for path in bin_list if binary_file in str(path)]


def sample_rates_by_uid(detections: pd.DataFrame) -> dict[int, int]:
    """
    Map each UID to its sample rate.

    Rows are deduplicated on (UID, sampleRate) and sorted by UID; if a UID
    carries more than one rate the first one wins.
    """
    pairs = (
        detections[[COL_UID, COL_SAMPLE_RATE]]
        .drop_duplicates()
        .sort_values(COL_UID, kind="stable")
    )
    rates: dict[int, int] = {}
    for uid, rate in zip(pairs[COL_UID], pairs[COL_SAMPLE_RATE], strict=True):
        if pd.isna(rate):
            continue
        rates.setdefault(int(uid), int(rate))
    return rates


def attach_sample_rates(binary: BinaryData, rates: dict[int, int]) -> BinaryData:
    """Return a copy of the binary data with sample rates set per UID."""
    records = [
        record.model_copy(update={"sample_rate": rates[record.uid]})
        if record.uid in rates
        else record
        for record in binary.records
    ]
    return binary.with_records(records)


def select_requested_rows(binary: BinaryData, detections: pd.DataFrame) -> BinaryData:
    """
    Cut a fully decoded file down to the requested detections.

    The database's row-sequence column (ClickNo) indexes records in file
    order, starting at zero. Without that column, records are picked by UID.
    """
    if COL_ROW_SEQUENCE in detections and detections[COL_ROW_SEQUENCE].notna().all():
        selected: list[BinaryRecord] = []
        for index in detections[COL_ROW_SEQUENCE].astype(int):
            if 0 <= index < len(binary.records):
                selected.append(binary.records[index])
            else:
                logger.debug(
                    f"{COL_ROW_SEQUENCE} {index} out of range for {binary.file_name}"
                )
        return binary.with_records(selected)

    wanted = set(detections[COL_UID].astype(int))
    return binary.with_records(r for r in binary.records if r.uid in wanted)


def get_binary_data(
    detections: pd.DataFrame,
    bin_list: Sequence[str | Path],
    decoder: BinaryDecoder | None = None,
) -> BinaryData | None:
    """
    Load the binary records for detections that share one binary file name.

    Args:
        detections: Database rows with UID, BinaryFile and sampleRate columns
        bin_list: Paths of all known binary files
        decoder: Decoder to use; picked per file from the registry if None

    Returns:
        BinaryData with sample rates attached, or None if no file matched

    Raises:
        DecoderError: If a candidate file cannot be decoded
    """
    detections = detections.sort_values(COL_UID, kind="stable")
    binary_file = str(detections[COL_BINARY_FILE].iloc[0])
    candidates = find_candidates(binary_file, bin_list)
    rates = sample_rates_by_uid(detections)

    if not candidates:
        return None

    if len(candidates) == 1:
        path = candidates[0]
        binary = resolve_decoder(path, decoder).decode(
            path, keep_uids=detections[COL_UID].astype(int).tolist()
        )
        return attach_sample_rates(binary, rates)

    logger.debug(
        f"{len(candidates)} binary files match {binary_file}, probing for UID"
    )
    probe_uid = int(detections[COL_UID].iloc[0])
    for path in candidates:
        binary = resolve_decoder(path, decoder).decode(path)
        if probe_uid not in binary.uids:
            continue
        return attach_sample_rates(select_requested_rows(binary, detections), rates)

    return None
