"""
Sample rate lookup for database detections.

PAMGuard logs every acquisition start in the Sound_Acquisition table. Each
detection takes the sample rate of the most recent start at or before its
own timestamp. Detections earlier than every start are left unresolved and
must be filled by an explicit policy.
"""

import logging

from enum import Enum

import pandas as pd

from pamr.constants import (
    ACQUISITION_START_STATUS,
    COL_SAMPLE_RATE,
    COL_STATUS,
    COL_SYSTEM_TYPE,
    COL_UTC,
    SOUND_ACQUISITION_TABLE,
)
from pamr.errors import AmbiguousSampleRateError, SampleRateRequiredError

logger = logging.getLogger(__name__)


class SampleRatePolicy(str, Enum):
    """How to fill sample rates that some, but not all, detections are missing."""

    REQUIRE_EXPLICIT = "require_explicit"  # fail unless a rate is supplied
    USE_MODE = "use_mode"  # most frequent rate among resolved detections
    USE_PROVIDED = "use_provided"  # the supplied rate, which must be given


def to_utc(values: pd.Series) -> pd.Series:
    """
    Parse PAMGuard timestamps as UTC.

    Accepts "YYYY-mm-dd HH:MM:SS" with or without fractional seconds.
    Unparseable values become NaT.
    """
    parsed = pd.to_datetime(
        values.astype("string").str.strip(), utc=True, format="ISO8601", errors="coerce"
    )
    return parsed.dt.as_unit("ns")


def prepare_acquisition(sound_acquisition: pd.DataFrame) -> pd.DataFrame:
    """
    Reduce the Sound_Acquisition table to sorted, distinct start records.

    Returns:
        DataFrame with UTC, sampleRate and SystemType columns, ascending by UTC
    """
    columns = [COL_UTC, COL_SAMPLE_RATE, COL_SYSTEM_TYPE]
    if sound_acquisition.empty:
        return pd.DataFrame(
            {
                COL_UTC: pd.Series(dtype="datetime64[ns, UTC]"),
                COL_SAMPLE_RATE: pd.Series(dtype="float64"),
                COL_SYSTEM_TYPE: pd.Series(dtype="object"),
            }
        )

    acquisition = sound_acquisition.copy()
    acquisition[COL_UTC] = to_utc(acquisition[COL_UTC])
    acquisition[COL_STATUS] = acquisition[COL_STATUS].astype("string").str.strip()
    if COL_SYSTEM_TYPE in acquisition:
        acquisition[COL_SYSTEM_TYPE] = (
            acquisition[COL_SYSTEM_TYPE].astype("string").str.strip()
        )
    else:
        acquisition[COL_SYSTEM_TYPE] = None

    is_start = acquisition[COL_STATUS] == ACQUISITION_START_STATUS
    acquisition = acquisition[is_start.fillna(False)].dropna(subset=[COL_UTC]).copy()
    acquisition[COL_SAMPLE_RATE] = pd.to_numeric(
        acquisition[COL_SAMPLE_RATE], errors="coerce"
    ).astype("float64")

    return (
        acquisition.sort_values(COL_UTC, kind="stable")[columns]
        .drop_duplicates()
        .reset_index(drop=True)
    )


def roll_sample_rates(
    detections: pd.DataFrame, acquisition: pd.DataFrame
) -> pd.DataFrame:
    """
    Give each detection the sample rate of the last acquisition start before it.

    Args:
        detections: Detections with a UTC column (parsed or raw)
        acquisition: Output of prepare_acquisition

    Returns:
        Detections sorted by UTC with sampleRate and SystemType columns.
        Rows with no earlier start, or no parseable timestamp, have a null
        sampleRate.
    """
    detections = detections.drop(
        columns=[COL_SAMPLE_RATE, COL_SYSTEM_TYPE], errors="ignore"
    ).copy()
    detections[COL_UTC] = to_utc(detections[COL_UTC])

    has_time = detections[COL_UTC].notna()
    timed = detections[has_time].sort_values(COL_UTC, kind="stable")
    untimed = detections[~has_time].assign(
        **{COL_SAMPLE_RATE: float("nan"), COL_SYSTEM_TYPE: None}
    )

    if acquisition.empty:
        joined = timed.assign(**{COL_SAMPLE_RATE: float("nan"), COL_SYSTEM_TYPE: None})
    else:
        joined = pd.merge_asof(
            timed,
            acquisition,
            on=COL_UTC,
            direction="backward",
            allow_exact_matches=True,
        )

    if untimed.empty:
        return joined.reset_index(drop=True)
    logger.warning(f"{len(untimed)} detection(s) have no valid UTC timestamp")
    return pd.concat([joined, untimed], ignore_index=True)


def most_common_sample_rate(sample_rates: pd.Series) -> int:
    """Most frequent non-null sample rate; ties go to the lowest rate."""
    return int(sample_rates.dropna().mode().iloc[0])


def resolve_missing_sample_rates(
    detections: pd.DataFrame,
    sample_rate: int | None = None,
    policy: SampleRatePolicy | str = SampleRatePolicy.REQUIRE_EXPLICIT,
    source: str = "",
) -> pd.DataFrame:
    """
    Fill detections whose sample rate could not be looked up.

    If every detection is missing a rate, sample_rate must be supplied. If only
    some are, a supplied sample_rate is used; otherwise the policy decides:
    USE_MODE fills with the most common resolved rate, USE_PROVIDED and
    REQUIRE_EXPLICIT fail.

    Args:
        detections: Output of roll_sample_rates
        sample_rate: Explicit rate to fill with
        policy: SampleRatePolicy for partially missing rates
        source: Database name used in messages

    Returns:
        Detections with an integer sampleRate column

    Raises:
        SampleRateRequiredError: No rate is available and none was supplied
        AmbiguousSampleRateError: Some rates are missing and the policy
            requires an explicit choice
    """
    policy = SampleRatePolicy(policy)
    missing = detections[COL_SAMPLE_RATE].isna()
    n_missing = int(missing.sum())
    total = len(detections)

    if n_missing == 0:
        return detections.astype({COL_SAMPLE_RATE: "int64"})

    if n_missing == total:
        if sample_rate is None:
            raise SampleRateRequiredError(
                f"No sample rate found in {SOUND_ACQUISITION_TABLE} table for "
                f"database {source}. A sample rate must be supplied."
            )
        fill = int(sample_rate)
    else:
        mode = most_common_sample_rate(detections[COL_SAMPLE_RATE])
        if sample_rate is not None:
            fill = int(sample_rate)
        elif policy is SampleRatePolicy.USE_MODE:
            fill = mode
        elif policy is SampleRatePolicy.USE_PROVIDED:
            raise SampleRateRequiredError(
                f"{n_missing} of {total} detection(s) in database {source} have no "
                f"sample rate and no replacement was supplied."
            )
        else:
            raise AmbiguousSampleRateError(
                f"Could not get sample rate for {n_missing} of {total} detection(s) "
                f"from the {SOUND_ACQUISITION_TABLE} table of database {source}. "
                f"Supply a sample rate, or use the most common value ({mode}).",
                mode=mode,
                missing=n_missing,
                total=total,
            )

    logger.warning(
        f"Filled {n_missing} missing sample rate(s) with {fill} for database {source}"
    )
    filled = detections.copy()
    filled[COL_SAMPLE_RATE] = filled[COL_SAMPLE_RATE].fillna(fill)
    return filled.astype({COL_SAMPLE_RATE: "int64"})
