"""
Top-level detection loading.

load_detections is the single entry point: with databases configured it
builds one AcousticEvent per database event, otherwise it processes every
binary file into a single event.

Each binary file is an independent unit of work. Files can be processed on a
thread pool; results are re-sorted by binary file name and UID before
assembly so the output does not depend on the order work completes in.
"""

import logging

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

import pandas as pd

from pamr.binaries.base import BinaryDecoder
from pamr.binaries.matcher import get_binary_data
from pamr.binaries.registry import (
    decoder_registry,
    register_default_decoders,
    resolve_decoder,
)
from pamr.config import get_default_decoder, get_sample_rate_policy, get_worker_count
from pamr.constants import COL_BINARY_FILE, COL_UID, GroupingMode, ModuleType
from pamr.database.extractor import get_db_data, parse_grouping
from pamr.database.sample_rate import SampleRatePolicy
from pamr.errors import (
    ConfigurationError,
    DecoderError,
    SampleRateRequiredError,
    TransformError,
)
from pamr.models.event import AcousticEvent
from pamr.pipeline.assembler import (
    assemble_all_event,
    assemble_db_events,
    join_binary_detections,
)
from pamr.processing.module_data import calculate_module_data
from pamr.settings import PamrSettings

logger = logging.getLogger(__name__)

StopCallback = Callable[[], bool]
ProgressCallback = Callable[[int, int], None]

# A unit of work returns the processed table, or None when the file is skipped
Task = Callable[[], pd.DataFrame | None]

RECOVERABLE_ERRORS = (DecoderError, OSError, TransformError)


def select_calibration(
    settings: PamrSettings, name: str | None
) -> dict[ModuleType, Callable[..., Any]]:
    """
    Pick the named calibration function for each module type that has one.

    Raises:
        ConfigurationError: If a name is given but no module type has it
    """
    if name is None:
        return {}
    selected = {
        module: functions[name]
        for module, functions in settings.calibration.items()
        if name in functions
    }
    if not selected:
        raise ConfigurationError(f"No calibration function named '{name}'")
    return selected


def _select_decoder(decoder: BinaryDecoder | str | None) -> BinaryDecoder | None:
    register_default_decoders()
    if decoder is None:
        decoder = get_default_decoder()
        if decoder is None:
            return None
    if isinstance(decoder, BinaryDecoder):
        return decoder
    found = decoder_registry.get_decoder(decoder)
    if found is None:
        available = ", ".join(d.decoder_id for d in decoder_registry.list_decoders())
        raise ConfigurationError(
            f"Unknown decoder '{decoder}'. Available decoders: {available}"
        )
    return found


def run_tasks(
    tasks: Sequence[tuple[str, Task]],
    workers: int = 1,
    should_stop: StopCallback | None = None,
    progress: ProgressCallback | None = None,
) -> list[pd.DataFrame]:
    """
    Run per-file tasks, sequentially or on a thread pool.

    Args:
        tasks: (binary file name, task) pairs
        workers: Number of worker threads; 1 runs in the calling thread
        should_stop: Checked after each file but the last; when it returns
            True the remaining files are skipped
        progress: Called with (files done, total files) after each file

    Returns:
        Non-empty results, sorted by binary file name then UID
    """
    total = len(tasks)
    results: list[pd.DataFrame] = []
    done = 0

    def record(result: pd.DataFrame | None) -> bool:
        nonlocal done
        done += 1
        if result is not None and not result.empty:
            results.append(result)
        if progress is not None:
            progress(done, total)
        if done < total and should_stop is not None and should_stop():
            logger.warning(f"Stopped early, {total - done} binary file(s) skipped")
            return True
        return False

    if workers <= 1 or total <= 1:
        for _, task in tasks:
            if record(task()):
                break
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(task) for _, task in tasks]
            for future in as_completed(futures):
                if record(future.result()):
                    for pending in futures:
                        pending.cancel()
                    break

    return sorted(results, key=_result_key)


def _result_key(table: pd.DataFrame) -> tuple[str, int]:
    return (str(table[COL_BINARY_FILE].iloc[0]), int(table[COL_UID].min()))


def _binary_task(
    path: Path,
    settings: PamrSettings,
    sample_rate: int,
    decoder: BinaryDecoder | None,
    calibration: dict[ModuleType, Callable[..., Any]],
) -> Task:
    def task() -> pd.DataFrame | None:
        try:
            binary = resolve_decoder(path, decoder).decode(path)
            binary = binary.with_records(
                record.model_copy(update={"sample_rate": sample_rate})
                for record in binary.records
            )
            return calculate_module_data(binary, settings.functions, calibration)
        except RECOVERABLE_ERRORS as e:
            logger.warning(f"Skipping binary file {path.name}: {e}")
            return None

    return task


def load_detections_all(
    settings: PamrSettings,
    sample_rate: int | None,
    *,
    decoder: BinaryDecoder | None = None,
    calibration: str | None = None,
    workers: int = 1,
    should_stop: StopCallback | None = None,
    progress: ProgressCallback | None = None,
) -> AcousticEvent:
    """
    Process every binary file into one AcousticEvent.

    Raises:
        SampleRateRequiredError: If no sample rate is supplied
        NoEventsError: If no binary file produced detections
    """
    if sample_rate is None:
        raise SampleRateRequiredError(
            "A sample rate must be supplied when no database is configured"
        )

    files = [Path(path) for path in settings.binaries.files]
    logger.info(f"Processing {len(files)} binary file(s) without a database")
    cal_functions = select_calibration(settings, calibration)
    tasks = [
        (path.name, _binary_task(path, settings, sample_rate, decoder, cal_functions))
        for path in files
    ]
    tables = run_tasks(tasks, workers, should_stop, progress)
    return assemble_all_event(
        tables, sample_rate, calibration, binaries=[path.name for path in files]
    )


def _db_binary_task(
    binary_file: str,
    rows: pd.DataFrame,
    settings: PamrSettings,
    db_name: str,
    decoder: BinaryDecoder | None,
    calibration: dict[ModuleType, Callable[..., Any]],
) -> Task:
    def task() -> pd.DataFrame | None:
        try:
            binary = get_binary_data(rows, settings.binaries.files, decoder)
            if binary is None:
                logger.warning(
                    f"Could not find the matching binary file for {binary_file} "
                    f"in database {db_name}"
                )
                return None
            bin_data = calculate_module_data(binary, settings.functions, calibration)
            return join_binary_detections(rows, bin_data)
        except RECOVERABLE_ERRORS as e:
            logger.warning(
                f"Skipping binary file {binary_file} from database {db_name}: {e}"
            )
            return None

    return task


def load_detections_db(
    settings: PamrSettings,
    db: str | Path,
    grouping: GroupingMode | str = GroupingMode.EVENT,
    sample_rate: int | None = None,
    *,
    policy: SampleRatePolicy | str = SampleRatePolicy.REQUIRE_EXPLICIT,
    decoder: BinaryDecoder | None = None,
    calibration: str | None = None,
    workers: int = 1,
    should_stop: StopCallback | None = None,
    progress: ProgressCallback | None = None,
) -> list[AcousticEvent]:
    """
    Build the AcousticEvents for one database.

    Raises:
        ConfigurationError, NoDataError: The database cannot be read as requested
        SampleRateRequiredError, AmbiguousSampleRateError: Sample rates are
            missing and the policy requires a decision
        NoEventsError: No database detection matched a binary file
    """
    db_name = Path(db).name
    detections = get_db_data(db, grouping, sample_rate, policy)
    cal_functions = select_calibration(settings, calibration)

    groups = detections.groupby(COL_BINARY_FILE, sort=True, dropna=True)
    logger.info(
        f"Matching {len(detections)} detection(s) from database {db_name} "
        f"across {groups.ngroups} binary file(s)"
    )
    tasks = [
        (
            str(binary_file),
            _db_binary_task(
                str(binary_file), rows, settings, db_name, decoder, cal_functions
            ),
        )
        for binary_file, rows in groups
    ]
    joined = run_tasks(tasks, workers, should_stop, progress)
    return assemble_db_events(joined, detections, db, calibration)


def load_detections(
    settings: PamrSettings,
    grouping: GroupingMode | str = GroupingMode.EVENT,
    sample_rate: int | None = None,
    *,
    policy: SampleRatePolicy | str | None = None,
    decoder: BinaryDecoder | str | None = None,
    calibration: str | None = None,
    workers: int | None = None,
    should_stop: StopCallback | None = None,
    progress: ProgressCallback | None = None,
) -> list[AcousticEvent]:
    """
    Load detections into AcousticEvents.

    With one or more databases configured, every database is processed in
    order and their events are concatenated. Without a database, all binary
    files are merged into a single event with id "all".

    Args:
        settings: Databases, binaries and processing functions
        grouping: "event" or "detGroup" (database mode only)
        sample_rate: Sample rate for detections without one; required when no
            database is configured
        policy: How to fill partially missing sample rates. Defaults to the
            configured sample_rate_policy.
        decoder: Decoder instance or id. Defaults to the configured decoder,
            or picking by file suffix.
        calibration: Name of a registered calibration function to pass to
            processing functions
        workers: Binary files processed at once. Defaults to the configured
            worker count.
        should_stop: Checked after each binary file to stop early
        progress: Called with (files done, total files)

    Returns:
        List of AcousticEvents
    """
    grouping = parse_grouping(grouping)
    policy = SampleRatePolicy(policy or get_sample_rate_policy())
    workers = workers or get_worker_count()
    selected = _select_decoder(decoder)

    if not settings.db:
        return [
            load_detections_all(
                settings,
                sample_rate,
                decoder=selected,
                calibration=calibration,
                workers=workers,
                should_stop=should_stop,
                progress=progress,
            )
        ]

    events: list[AcousticEvent] = []
    for db in settings.db:
        events.extend(
            load_detections_db(
                settings,
                db,
                grouping,
                sample_rate,
                policy=policy,
                decoder=selected,
                calibration=calibration,
                workers=workers,
                should_stop=should_stop,
                progress=progress,
            )
        )
    return events
