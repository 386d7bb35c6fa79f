"""
PAMr: load PAMGuard detections into acoustic events.

Detections come from PAMGuard SQLite databases and binary files, are run
through user-registered processing functions, and are grouped into
AcousticEvent objects ready for classification.
"""

from pamr.constants import GroupingMode, ModuleType
from pamr.database.sample_rate import SampleRatePolicy
from pamr.models.event import AcousticEvent, Cruise, DataSettings, EventFiles, VisObsData
from pamr.pipeline.loader import load_detections
from pamr.settings import (
    PamrSettings,
    add_binaries,
    add_calibration,
    add_database,
    add_function,
    remove_function,
)

__all__ = [
    "AcousticEvent",
    "Cruise",
    "DataSettings",
    "EventFiles",
    "GroupingMode",
    "ModuleType",
    "PamrSettings",
    "SampleRatePolicy",
    "VisObsData",
    "add_binaries",
    "add_calibration",
    "add_database",
    "add_function",
    "load_detections",
    "remove_function",
]
