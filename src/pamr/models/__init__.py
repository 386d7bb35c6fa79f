"""Data containers for acoustic events and cruises."""

from pamr.models.event import (
    AcousticEvent,
    Cruise,
    CruiseFolders,
    DataSettings,
    EventFiles,
    VisObsData,
)

__all__ = [
    "AcousticEvent",
    "Cruise",
    "CruiseFolders",
    "DataSettings",
    "EventFiles",
    "VisObsData",
]
