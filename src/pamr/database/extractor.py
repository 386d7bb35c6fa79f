"""
Read detections and their events from a PAMGuard database.

Detections can be grouped either by the OfflineEvents tables written by the
click detector's event marking, or by the Detection Group Localiser module.
Both end up as one table of detections with their event columns, timestamps,
binary file names and sample rates.
"""

import logging

from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from sqlalchemy import Connection

from pamr.constants import (
    COL_BINARY_FILE,
    COL_ID,
    COL_PARENT_UID,
    COL_ROW_SEQUENCE,
    COL_SAMPLE_RATE,
    COL_STATUS,
    COL_SYSTEM_TYPE,
    COL_UID,
    COL_UTC,
    DETECTION_GROUP_MODULE,
    MODULE_NAME_COLUMN,
    MODULE_TYPE_COLUMN,
    MODULES_TABLE,
    SOUND_ACQUISITION_TABLE,
    TABLE_CONVENTIONS,
    GroupingMode,
)
from pamr.database.sample_rate import (
    SampleRatePolicy,
    prepare_acquisition,
    resolve_missing_sample_rates,
    roll_sample_rates,
)
from pamr.database.session import database_scope, list_tables, read_table
from pamr.errors import ConfigurationError, NoDataError

logger = logging.getLogger(__name__)

REQUIRED_DETECTION_COLUMNS = [COL_UTC, COL_UID, COL_PARENT_UID, COL_BINARY_FILE]
REQUIRED_ACQUISITION_COLUMNS = [COL_UTC, COL_STATUS, COL_SAMPLE_RATE]


def parse_grouping(grouping: GroupingMode | str) -> GroupingMode:
    """
    Convert a grouping name to a GroupingMode.

    Raises:
        ConfigurationError: If the grouping mode is not recognized
    """
    try:
        return GroupingMode(grouping)
    except ValueError:
        valid = ", ".join(mode.value for mode in GroupingMode)
        raise ConfigurationError(
            f"I don't know how to group by '{grouping}'. Valid groupings are: {valid}"
        ) from None


def match_tables(
    tables: Iterable[str],
    grouping: GroupingMode | str,
    group_module_types: Iterable[str] = (),
) -> tuple[list[str], list[str], list[str]]:
    """
    Split database tables into detection and event tables.

    Args:
        tables: All table names in the database
        grouping: Grouping mode
        group_module_types: Module types of Detection Group Localiser modules,
            used only when grouping by detGroup

    Returns:
        (detection tables, event tables, wanted event columns)
    """
    grouping = parse_grouping(grouping)
    convention = TABLE_CONVENTIONS[grouping]
    tables = sorted(tables)

    if grouping is GroupingMode.EVENT:
        det_pattern = convention["detection_pattern"] or ""
        event_pattern = convention["event_pattern"] or ""
        det_tables = [t for t in tables if det_pattern in t]
        event_tables = [t for t in tables if event_pattern in t]
    else:
        child_marker = convention["child_marker"] or ""
        fragments = [m.strip().replace(" ", "_") for m in group_module_types]
        grouped = [t for t in tables if any(f and f in t for f in fragments)]
        det_tables = [t for t in grouped if child_marker in t]
        event_tables = [t for t in grouped if child_marker not in t]

    return det_tables, event_tables, list(convention["event_columns"])


def detection_group_module_types(connection: Connection, db_name: str) -> list[str]:
    """
    Module types of all Detection Group Localiser modules in the database.

    Raises:
        ConfigurationError: If the module table is missing
    """
    if MODULES_TABLE not in list_tables(connection):
        raise ConfigurationError(
            f"Could not find table {MODULES_TABLE} in database {db_name}"
        )
    modules = read_table(connection, MODULES_TABLE)
    names = modules[MODULE_NAME_COLUMN].astype("string").str.strip()
    types = modules[MODULE_TYPE_COLUMN].astype("string").str.strip()
    selected = types[(names == DETECTION_GROUP_MODULE).fillna(False)]
    return list(dict.fromkeys(selected.dropna()))


def _read_tables(connection: Connection, tables: list[str]) -> pd.DataFrame:
    frames = [read_table(connection, table) for table in tables]
    frames = [frame for frame in frames if not frame.empty]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True, sort=False)


def join_events(
    detections: pd.DataFrame, events: pd.DataFrame, event_columns: list[str]
) -> tuple[pd.DataFrame, list[str]]:
    """
    Left-join detections to their events on parentUID.

    Every detection is kept; detections without an event get null event
    columns.

    Returns:
        (joined detections, event columns carried through)
    """
    event_columns = [c for c in event_columns if c in events.columns]
    extra = [c for c in event_columns if c != COL_UID]
    if COL_UID not in event_columns:
        logger.debug("Event tables have no UID column, event fields are skipped")
        return detections, [c for c in event_columns if c in detections.columns]

    events = (
        events[event_columns]
        .rename(columns={COL_UID: COL_PARENT_UID})
        .drop_duplicates(subset=[COL_PARENT_UID])
    )
    detections = detections.drop(columns=extra, errors="ignore")
    joined = detections.merge(events, how="left", on=COL_PARENT_UID)
    return joined, event_columns


def get_db_data(
    db: str | Path,
    grouping: GroupingMode | str = GroupingMode.EVENT,
    sample_rate: int | None = None,
    policy: SampleRatePolicy | str = SampleRatePolicy.REQUIRE_EXPLICIT,
) -> pd.DataFrame:
    """
    Read all grouped detections from a PAMGuard database.

    Args:
        db: Path to the database
        grouping: "event" for OfflineEvents, "detGroup" for Detection Group
            Localiser groups
        sample_rate: Sample rate for detections the acquisition table does
            not cover
        policy: How to fill partially missing sample rates

    Returns:
        One row per detection with event columns, UTC, Id, UID, parentUID,
        BinaryFile, SystemType and sampleRate

    Raises:
        ConfigurationError: Unknown grouping, or required tables or columns
            are missing
        NoDataError: The detection tables are empty
        SampleRateRequiredError, AmbiguousSampleRateError: see
            resolve_missing_sample_rates
    """
    grouping = parse_grouping(grouping)
    db_name = Path(db).name

    with database_scope(db) as connection:
        tables = list_tables(connection)
        group_types: list[str] = []
        if grouping is GroupingMode.DET_GROUP:
            group_types = detection_group_module_types(connection, db_name)

        det_tables, event_tables, event_columns = match_tables(
            tables, grouping, group_types
        )
        if not det_tables or not event_tables:
            raise ConfigurationError(
                f'Could not find tables for grouping method "{grouping.value}" '
                f"in database {db_name}"
            )
        logger.debug(
            f"Detection tables {det_tables}, event tables {event_tables} in {db_name}"
        )

        detections = _read_tables(connection, det_tables)
        if detections.empty:
            raise NoDataError(
                f'No detections found for grouping method "{grouping.value}" '
                f"in database {db_name}"
            )
        events = _read_tables(connection, event_tables)

        if SOUND_ACQUISITION_TABLE in tables:
            sound_acquisition = read_table(connection, SOUND_ACQUISITION_TABLE)
            missing = [
                c for c in REQUIRED_ACQUISITION_COLUMNS if c not in sound_acquisition.columns
            ]
            if missing:
                raise ConfigurationError(
                    f"{SOUND_ACQUISITION_TABLE} table in database {db_name} is missing "
                    "column(s): " + ", ".join(missing)
                )
        else:
            logger.warning(
                f"No {SOUND_ACQUISITION_TABLE} table in database {db_name}"
            )
            sound_acquisition = pd.DataFrame()

    missing = [c for c in REQUIRED_DETECTION_COLUMNS if c not in detections.columns]
    if missing:
        raise ConfigurationError(
            f"Detection tables in database {db_name} are missing column(s): "
            + ", ".join(missing)
        )

    detections, event_columns = join_events(detections, events, event_columns)
    detections[COL_BINARY_FILE] = detections[COL_BINARY_FILE].astype("string").str.strip()

    keep = list(
        dict.fromkeys(
            event_columns + [COL_UTC, COL_ID, COL_UID, COL_PARENT_UID, COL_BINARY_FILE]
        )
    )
    if COL_ROW_SEQUENCE in detections.columns:
        keep.append(COL_ROW_SEQUENCE)
    keep = [c for c in keep if c in detections.columns]

    acquisition = prepare_acquisition(sound_acquisition)
    detections = roll_sample_rates(detections[keep], acquisition)
    detections = resolve_missing_sample_rates(
        detections, sample_rate=sample_rate, policy=policy, source=db_name
    )

    sample_rates = sorted(detections[COL_SAMPLE_RATE].unique())
    if len(sample_rates) > 1:
        logger.warning(
            f"More than 1 sample rate found in database {db_name}: {sample_rates}"
        )

    columns = keep + [COL_SYSTEM_TYPE, COL_SAMPLE_RATE]
    return detections[columns]
