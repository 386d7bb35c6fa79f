"""
Acoustic event containers.

An AcousticEvent holds every detection belonging to one event, split by the
detector that made it, along with the settings and files used to build it.
Events are frozen once built; downstream steps add localizations and species
classifications through with_localization / with_species_classification,
which return new events.
"""

import math

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

import pandas as pd

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pamr.constants import NO_CALIBRATION, NO_DATABASE, NOT_FOUND


def _as_tuple(value: Any) -> tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return (value,)
    return tuple(value)


class DataSettings(BaseModel):
    """
    Data collection settings for an event.

    Holds more than one value when the source database spans several
    acquisition configurations.
    """

    model_config = ConfigDict(frozen=True)

    sample_rate: tuple[int, ...] = Field(default=(), description="Sample rate(s) (Hz)")
    sound_source: tuple[str, ...] = Field(
        default=(NOT_FOUND,), description="Sound card, recording system, or file"
    )

    @field_validator("sample_rate", mode="before")
    @classmethod
    def wrap_sample_rate(cls, value: Any) -> tuple[int, ...]:
        return tuple(int(rate) for rate in _as_tuple(value))

    @field_validator("sound_source", mode="before")
    @classmethod
    def wrap_sound_source(cls, value: Any) -> tuple[str, ...]:
        sources = tuple(str(source) for source in _as_tuple(value))
        return sources or (NOT_FOUND,)

    def __str__(self) -> str:
        def shorten(values: tuple[Any, ...]) -> str:
            shown = [str(v) for v in values[:6]]
            if len(values) > 6:
                shown.append("...")
            return ", ".join(shown)

        return (
            "DataSettings object with settings:\n"
            f"Sample Rate(s): {shorten(self.sample_rate)}\n"
            f"Sound Source(s): {shorten(self.sound_source)}"
        )


class VisObsData(BaseModel):
    """Visual observation data for an event."""

    model_config = ConfigDict(frozen=True)

    detection_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    species_id: str = Field(default="None", description="Species identification")
    group_size_est: float = Field(default=math.nan, description="Group size estimate")
    effort_status: str = Field(default="None", description="Effort status")


class EventFiles(BaseModel):
    """Files used to build an event."""

    model_config = ConfigDict(frozen=True)

    binaries: tuple[str, ...] = Field(default=(), description="Binary file names")
    database: str = Field(default=NO_DATABASE, description="Database base name")
    calibration: str = Field(default=NO_CALIBRATION, description="Calibration used")


class AcousticEvent(BaseModel):
    """Detections from a single acoustic event, keyed by detector name."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str = Field(description="Event identifier")
    detectors: dict[str, pd.DataFrame] = Field(
        description="Detections and measurements, one table per detector"
    )
    localizations: dict[str, Any] = Field(default_factory=dict)
    settings: DataSettings = Field(default_factory=DataSettings)
    vis_data: VisObsData | None = Field(default=None)
    behavior: dict[str, Any] = Field(default_factory=dict)
    erddap: dict[str, Any] = Field(default_factory=dict)
    spec_class: dict[str, Any] = Field(
        default_factory=dict, description="Species classifications by method"
    )
    files: EventFiles = Field(default_factory=EventFiles)

    @model_validator(mode="after")
    def validate_detectors(self) -> "AcousticEvent":
        if not self.detectors:
            raise ValueError("AcousticEvent must have at least one detector")
        for name, table in self.detectors.items():
            if not isinstance(name, str) or not name.strip():
                raise ValueError("All detectors in an AcousticEvent must be named")
            if not isinstance(table, pd.DataFrame):
                raise ValueError(f"Detector '{name}' must be a DataFrame")
            if table.empty:
                raise ValueError(f"Detector '{name}' has no detections")
        return self

    @classmethod
    def from_detectors(
        cls,
        id: str,
        detectors: Mapping[str, pd.DataFrame] | Iterable[tuple[str, pd.DataFrame]],
        **kwargs: Any,
    ) -> "AcousticEvent":
        """
        Build an event from (name, table) pairs.

        Raises:
            ValueError: If a detector name repeats, or the event would have no
                detectors or an empty detector table
        """
        pairs = detectors.items() if isinstance(detectors, Mapping) else detectors
        tables: dict[str, pd.DataFrame] = {}
        for name, table in pairs:
            if name in tables:
                raise ValueError(f"Duplicate detector name '{name}' in event {id}")
            tables[name] = table
        return cls(id=id, detectors=tables, **kwargs)

    @property
    def detector_names(self) -> list[str]:
        return list(self.detectors)

    @property
    def n_detections(self) -> int:
        return sum(len(table) for table in self.detectors.values())

    def with_localization(self, method: str, positions: Any) -> "AcousticEvent":
        return self.model_copy(
            update={"localizations": {**self.localizations, method: positions}}
        )

    def with_species_classification(self, method: str, result: Any) -> "AcousticEvent":
        return self.model_copy(update={"spec_class": {**self.spec_class, method: result}})

    def __str__(self) -> str:
        return (
            f"AcousticEvent object with {len(self.detectors)} detector(s):\n"
            + ", ".join(self.detectors)
        )


class CruiseFolders(BaseModel):
    """Folders holding the data for a cruise."""

    model_config = ConfigDict(frozen=True)

    database: str = "None"
    binaries: str = "None"
    vis_data: str = "None"
    enviro_data: str = "None"


class Cruise(BaseModel):
    """A survey cruise: its folders, GPS track and acoustic events."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    folders: CruiseFolders = Field(default_factory=CruiseFolders)
    gps_data: pd.DataFrame = Field(default_factory=pd.DataFrame)
    acoustic_events: tuple[AcousticEvent, ...] = Field(default=())
    detector_settings: dict[str, Any] = Field(default_factory=dict)
    localization_settings: dict[str, Any] = Field(default_factory=dict)
    effort: pd.DataFrame = Field(default_factory=pd.DataFrame)

    @field_validator("acoustic_events", mode="before")
    @classmethod
    def check_events(cls, value: Any) -> tuple[AcousticEvent, ...]:
        events = _as_tuple(value)
        for event in events:
            if not isinstance(event, AcousticEvent):
                raise ValueError(
                    "acoustic_events must contain only AcousticEvent objects, "
                    f"got {type(event).__name__}"
                )
        return events

    def event_ids(self) -> list[str]:
        return [event.id for event in self.acoustic_events]
