"""
Apply registered processing functions to decoded binary records.

Each record is run through every function registered for its module type.
A function returns a mapping of measurement names to values, or a list of
mappings when it measures several channels; each mapping becomes an output
row. Records from unregistered module types keep only the base columns.
"""

import logging

from collections.abc import Callable, Mapping
from typing import Any

import pandas as pd

from pamr.binaries.base import BinaryData, BinaryRecord
from pamr.constants import (
    BINARY_BASE_COLUMNS,
    COL_BINARY_FILE,
    COL_DETECTOR_NAME,
    COL_SAMPLE_RATE,
    COL_UID,
    COL_UTC,
    ModuleType,
)
from pamr.errors import TransformError

logger = logging.getLogger(__name__)


def _as_rows(result: Any, function_name: str) -> list[dict[str, Any]]:
    if result is None:
        return [{}]
    if isinstance(result, Mapping):
        return [dict(result)]
    if isinstance(result, pd.DataFrame):
        return result.to_dict(orient="records")
    if isinstance(result, (list, tuple)) and all(isinstance(r, Mapping) for r in result):
        return [dict(r) for r in result] or [{}]
    raise TypeError(
        f"Function '{function_name}' returned {type(result).__name__}, "
        "expected a mapping or a list of mappings"
    )


def _combine(rows: list[dict[str, Any]], new_rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Column-bind two row sets; a single row is repeated to match the other."""
    if len(rows) == 1:
        rows = rows * len(new_rows)
    elif len(new_rows) == 1:
        new_rows = new_rows * len(rows)
    if len(rows) != len(new_rows):
        raise ValueError(
            f"Functions returned different numbers of rows ({len(rows)} and {len(new_rows)})"
        )
    return [{**left, **right} for left, right in zip(rows, new_rows, strict=True)]


def process_record(
    record: BinaryRecord,
    functions: Mapping[str, Callable[..., Any]],
    calibration: Callable[..., Any] | None = None,
    binary_file: str = "",
) -> list[dict[str, Any]]:
    """
    Run one record through a set of functions.

    Returns:
        Measurement rows for the record, without the base columns

    Raises:
        TransformError: If a function raises or returns an unusable result
    """
    rows: list[dict[str, Any]] = [{}]
    kwargs = {"calibration": calibration} if calibration is not None else {}
    for name, func in functions.items():
        try:
            result = _as_rows(func(record, **kwargs), name)
            rows = _combine(rows, result)
        except Exception as e:
            raise TransformError(
                f"Function '{name}' failed on UID {record.uid} in {binary_file}: {e}",
                module_type=record.module_type,
                function_name=name,
                binary_file=binary_file,
            ) from e
    return rows


def calculate_module_data(
    binary: BinaryData,
    functions: Mapping[ModuleType, Mapping[str, Callable[..., Any]]],
    calibration: Mapping[ModuleType, Callable[..., Any]] | None = None,
) -> pd.DataFrame:
    """
    Build the detection table for one binary file.

    Args:
        binary: Decoded binary file
        functions: Processing functions by module type and name
        calibration: Calibration function to pass to each module type's
            processing functions

    Returns:
        One row per record (or per measured channel) with UID, UTC,
        detectorName, BinaryFile and sampleRate followed by every measurement

    Raises:
        TransformError: If a registered function fails
    """
    calibration = calibration or {}
    rows: list[dict[str, Any]] = []
    unregistered: set[str] = set()

    for record in binary.records:
        module = ModuleType.from_header(record.module_type or binary.module_type)
        module_functions = functions.get(module, {}) if module else {}
        if not module_functions:
            unregistered.add(record.module_type)

        base = {
            COL_UID: record.uid,
            COL_UTC: record.utc,
            COL_DETECTOR_NAME: record.detector_name,
            COL_BINARY_FILE: binary.file_name,
            COL_SAMPLE_RATE: record.sample_rate,
        }
        measurements = process_record(
            record,
            module_functions,
            calibration.get(module) if module else None,
            binary.file_name,
        )
        rows.extend({**base, **measurement} for measurement in measurements)

    if unregistered:
        logger.debug(
            f"No functions for module type(s) {sorted(unregistered)} in {binary.file_name}"
        )

    if not rows:
        return pd.DataFrame(columns=BINARY_BASE_COLUMNS)

    table = pd.DataFrame.from_records(rows)
    extra = [c for c in table.columns if c not in BINARY_BASE_COLUMNS]
    return table[BINARY_BASE_COLUMNS + extra]
