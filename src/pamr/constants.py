"""
Constants and naming conventions for PAMGuard data processing.

Table and column names follow what PAMGuard writes into its SQLite
databases. Table discovery rules are kept here as data so they can be
audited and tested without touching the extraction logic.
"""

from enum import Enum
from pathlib import Path
from typing import TypedDict

# ============================================================================
# Module Types
# ============================================================================


class ModuleType(str, Enum):
    """PAMGuard detector module types that can have processing functions."""

    CLICK_DETECTOR = "ClickDetector"
    WHISTLES_MOANS = "WhistlesMoans"
    CEPSTRUM = "Cepstrum"
    GPL_DETECTOR = "GPLDetector"

    @classmethod
    def from_header(cls, module_type: str | None) -> "ModuleType | None":
        """
        Map a binary file header module type onto a ModuleType.

        Headers spell module types loosely ("Click Detector", "WhistlesMoans",
        "Cepstrum Detector"), so spaces, underscores and case are ignored and a
        trailing "Detector" is optional.

        Args:
            module_type: Module type string from a binary file header

        Returns:
            Matching ModuleType, or None if the type is not recognized
        """
        if not module_type:
            return None
        key = module_type.replace(" ", "").replace("_", "").lower()
        for member in cls:
            value = member.value.lower()
            if key == value or key == f"{value}detector":
                return member
        return None


# ============================================================================
# Grouping Modes and Table Naming Conventions
# ============================================================================


class GroupingMode(str, Enum):
    """How detections in a database are grouped into events."""

    EVENT = "event"  # OfflineEvents / OfflineClicks tables
    DET_GROUP = "detGroup"  # Detection Group Localiser module tables


class TableConvention(TypedDict):
    """Naming rules used to discover detection and event tables."""

    detection_pattern: str | None
    event_pattern: str | None
    child_marker: str | None
    event_columns: list[str]


TABLE_CONVENTIONS: dict[GroupingMode, TableConvention] = {
    GroupingMode.EVENT: {
        "detection_pattern": "OfflineClicks",
        "event_pattern": "OfflineEvents",
        "child_marker": None,
        "event_columns": ["UID", "eventType", "comment"],
    },
    # Detection group table names are derived from the module registry,
    # so only the child marker is fixed here.
    GroupingMode.DET_GROUP: {
        "detection_pattern": None,
        "event_pattern": None,
        "child_marker": "Children",
        "event_columns": ["UID"],
    },
}

MODULES_TABLE = "PamguardModules"
MODULE_NAME_COLUMN = "Module_Name"
MODULE_TYPE_COLUMN = "Module_Type"
DETECTION_GROUP_MODULE = "Detection Group Localiser"

SOUND_ACQUISITION_TABLE = "Sound_Acquisition"
ACQUISITION_START_STATUS = "Start"

# ============================================================================
# Column Names
# ============================================================================

COL_UTC = "UTC"
COL_ID = "Id"
COL_UID = "UID"
COL_PARENT_UID = "parentUID"
COL_BINARY_FILE = "BinaryFile"
COL_SAMPLE_RATE = "sampleRate"
COL_SYSTEM_TYPE = "SystemType"
COL_STATUS = "Status"
COL_DETECTOR_NAME = "detectorName"
COL_ROW_SEQUENCE = "ClickNo"

BINARY_BASE_COLUMNS = [
    COL_UID,
    COL_UTC,
    COL_DETECTOR_NAME,
    COL_BINARY_FILE,
    COL_SAMPLE_RATE,
]

# ============================================================================
# Defaults
# ============================================================================

BINARY_FILE_SUFFIX = ".pgdf"
NO_DATABASE = "None"
NO_CALIBRATION = "None"
NOT_FOUND = "Not Found"
ALL_BINARIES_EVENT_ID = "all"

DEFAULT_CONFIG_DIR = Path.home() / ".pamr"
DEFAULT_LOG_DIR = DEFAULT_CONFIG_DIR / "logs"
DEFAULT_LOG_FILE = "pamr.log"
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_LOG_BACKUP_COUNT = 5
DEFAULT_WORKERS = 1
