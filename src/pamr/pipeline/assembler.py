"""
Assemble AcousticEvents from processed binary detections.

Per-binary tables are pooled, split by detector name, and, when a database
is used, split again by event id. Detectors with no rows under an event are
left out of that event.
"""

import logging

from collections.abc import Iterable, Sequence
from pathlib import Path

import pandas as pd

from pamr.constants import (
    ALL_BINARIES_EVENT_ID,
    COL_BINARY_FILE,
    COL_DETECTOR_NAME,
    COL_PARENT_UID,
    COL_SAMPLE_RATE,
    COL_SYSTEM_TYPE,
    COL_UID,
    NO_CALIBRATION,
    NO_DATABASE,
)
from pamr.errors import NoEventsError
from pamr.models.event import AcousticEvent, DataSettings, EventFiles

logger = logging.getLogger(__name__)

# Columns kept on every detector table even when another detector fills them
KEEP_COLUMNS = {COL_UID, COL_DETECTOR_NAME, COL_BINARY_FILE, COL_PARENT_UID, COL_SAMPLE_RATE}


def distinct_rows(table: pd.DataFrame) -> pd.DataFrame:
    """
    Drop exact duplicate rows.

    Measurement columns can hold lists or arrays, which pandas cannot hash;
    those tables are compared on their string form instead.
    """
    try:
        duplicated = table.duplicated()
    except TypeError:
        duplicated = table.astype(str).duplicated()
    return table[~duplicated].reset_index(drop=True)


def join_binary_detections(db_rows: pd.DataFrame, bin_data: pd.DataFrame) -> pd.DataFrame:
    """
    Inner-join one binary file's detections to its database rows on UID.

    Database columns win when both sides carry the same column, so the
    database sample rate and UTC replace the binary ones.
    """
    if bin_data.empty:
        return bin_data.iloc[0:0]
    overlap = [c for c in bin_data.columns if c in db_rows.columns and c != COL_UID]
    joined = bin_data.drop(columns=overlap).merge(db_rows, how="inner", on=COL_UID)
    return distinct_rows(joined)


def _detector_parts(table: pd.DataFrame, keep: set[str]) -> Iterable[tuple[str, pd.DataFrame]]:
    """
    Split one binary file's detections by detector name.

    When a file holds several detectors, columns that only another detector
    filled in are dropped. Columns null for every row of the file stay.
    """
    groups = list(table.groupby(COL_DETECTOR_NAME, sort=False))
    for name, rows in groups:
        if len(groups) > 1:
            foreign = [
                c
                for c in rows.columns
                if c not in keep and rows[c].isna().all() and table[c].notna().any()
            ]
            rows = rows.drop(columns=foreign)
        yield str(name), rows


def split_by_detector(
    tables: Iterable[pd.DataFrame], keep_columns: Iterable[str] = ()
) -> dict[str, pd.DataFrame]:
    """
    Pool detections and split them into one table per detector.

    Same-named detectors from different binary files are merged. Rows are
    ordered by binary file then UID so the result does not depend on the
    order the files were processed in.

    Args:
        tables: Detections, one table per binary file
        keep_columns: Columns every detector table keeps, such as the
            database event columns
    """
    keep = KEEP_COLUMNS | set(keep_columns)
    frames = sorted(
        (table for table in tables if not table.empty),
        key=lambda t: (str(t[COL_BINARY_FILE].iloc[0]), t[COL_UID].min()),
    )

    parts: dict[str, list[pd.DataFrame]] = {}
    for table in frames:
        for name, rows in _detector_parts(table, keep):
            parts.setdefault(name, []).append(rows)

    detectors: dict[str, pd.DataFrame] = {}
    for name in sorted(parts):
        pooled = pd.concat(parts[name], ignore_index=True, sort=False)
        pooled = pooled.sort_values([COL_BINARY_FILE, COL_UID], kind="stable")
        detectors[name] = distinct_rows(pooled)
    return detectors


def _event_id(parent_uid: object) -> str:
    if isinstance(parent_uid, float) and parent_uid.is_integer():
        return str(int(parent_uid))
    return str(parent_uid)


def group_by_event(
    detectors: dict[str, pd.DataFrame],
) -> dict[str, dict[str, pd.DataFrame]]:
    """
    Re-split each detector's rows by parentUID.

    Returns:
        Detector tables keyed by event id, then by detector name. Rows with
        no parentUID are dropped.
    """
    events: dict[str, dict[str, pd.DataFrame]] = {}
    for name, table in detectors.items():
        for parent_uid, rows in table.groupby(COL_PARENT_UID, sort=True, dropna=True):
            events.setdefault(_event_id(parent_uid), {})[name] = rows.reset_index(drop=True)
    return events


def _binary_names(tables: Iterable[pd.DataFrame]) -> tuple[str, ...]:
    names: set[str] = set()
    for table in tables:
        names.update(str(name) for name in table[COL_BINARY_FILE].dropna())
    return tuple(sorted(names))


def assemble_db_events(
    joined: Sequence[pd.DataFrame],
    db_detections: pd.DataFrame,
    db: str | Path,
    calibration: str | None = None,
) -> list[AcousticEvent]:
    """
    Build one AcousticEvent per event id from database-matched detections.

    Args:
        joined: Outputs of join_binary_detections, one per binary file
        db_detections: Full database extraction, used for the event settings
        db: Database path
        calibration: Name of the calibration function applied, if any

    Returns:
        Events ordered by event id

    Raises:
        NoEventsError: If no detection matched a binary file
    """
    db_name = Path(db).name
    detectors = split_by_detector(joined, keep_columns=db_detections.columns)
    if not detectors:
        raise NoEventsError(
            f"No detections from database {db_name} could be matched to binary files"
        )

    settings = DataSettings(
        sample_rate=sorted(db_detections[COL_SAMPLE_RATE].dropna().unique()),
        sound_source=sorted(db_detections[COL_SYSTEM_TYPE].dropna().astype(str).unique()),
    )

    events = []
    for event_id, event_detectors in group_by_event(detectors).items():
        files = EventFiles(
            binaries=_binary_names(event_detectors.values()),
            database=db_name,
            calibration=calibration or NO_CALIBRATION,
        )
        events.append(
            AcousticEvent.from_detectors(
                event_id, event_detectors, settings=settings, files=files
            )
        )

    if not events:
        raise NoEventsError(f"No detections in database {db_name} belong to an event")

    events.sort(key=lambda event: _sort_key(event.id))
    logger.info(f"Assembled {len(events)} event(s) from database {db_name}")
    return events


def _sort_key(event_id: str) -> tuple[int, float | str]:
    try:
        return (0, float(event_id))
    except ValueError:
        return (1, event_id)


def assemble_all_event(
    tables: Sequence[pd.DataFrame],
    sample_rate: int,
    calibration: str | None = None,
    binaries: Iterable[str] | None = None,
) -> AcousticEvent:
    """
    Build a single AcousticEvent holding every detection from every binary.

    Args:
        tables: Processed detections, one table per binary file
        sample_rate: Sample rate applied to every detection
        calibration: Name of the calibration function applied, if any
        binaries: Names of every binary file processed. Defaults to the
            files that produced detections.

    Raises:
        NoEventsError: If no binary file produced any detections
    """
    detectors = split_by_detector(tables)
    if not detectors:
        raise NoEventsError("No detections found in any binary file")

    if binaries is None:
        binary_names = _binary_names(detectors.values())
    else:
        binary_names = tuple(sorted(binaries))

    return AcousticEvent.from_detectors(
        ALL_BINARIES_EVENT_ID,
        detectors,
        settings=DataSettings(sample_rate=sample_rate),
        files=EventFiles(
            binaries=binary_names,
            database=NO_DATABASE,
            calibration=calibration or NO_CALIBRATION,
        ),
    )
