"""Tests for AcousticEvent, DataSettings and Cruise validation."""

import pandas as pd
import pytest

from pydantic import ValidationError

from pamr.models.event import AcousticEvent, Cruise, DataSettings, EventFiles


@pytest.fixture
def clicks():
    return pd.DataFrame({"UID": [1, 2], "peak": [30.1, 31.5]})


class TestAcousticEvent:
    def test_valid_event(self, clicks):
        event = AcousticEvent(id="100", detectors={"Click_Detector_1": clicks})

        assert event.detector_names == ["Click_Detector_1"]
        assert event.n_detections == 2
        assert event.files.database == "None"
        assert event.localizations == {}
        assert event.spec_class == {}

    def test_requires_a_detector(self):
        with pytest.raises(ValidationError, match="at least one detector"):
            AcousticEvent(id="100", detectors={})

    def test_rejects_empty_detector_table(self):
        with pytest.raises(ValidationError, match="has no detections"):
            AcousticEvent(id="100", detectors={"Click_Detector_1": pd.DataFrame()})

    def test_rejects_unnamed_detector(self, clicks):
        with pytest.raises(ValidationError, match="must be named"):
            AcousticEvent(id="100", detectors={" ": clicks})

    def test_from_detectors_rejects_duplicate_names(self, clicks):
        with pytest.raises(ValueError, match="Duplicate detector name"):
            AcousticEvent.from_detectors(
                "100", [("Click_Detector_1", clicks), ("Click_Detector_1", clicks)]
            )

    def test_event_is_frozen(self, clicks):
        event = AcousticEvent(id="100", detectors={"Click_Detector_1": clicks})

        with pytest.raises(ValidationError):
            event.id = "200"

    def test_enrichment_returns_new_event(self, clicks):
        event = AcousticEvent(id="100", detectors={"Click_Detector_1": clicks})

        localized = event.with_localization("BearingOnly", {"bearing": 1.2})
        classified = localized.with_species_classification("rf", "Zc")

        assert event.localizations == {}
        assert localized.localizations == {"BearingOnly": {"bearing": 1.2}}
        assert classified.spec_class == {"rf": "Zc"}
        assert classified.localizations == localized.localizations


class TestDataSettings:
    def test_scalars_are_wrapped(self):
        settings = DataSettings(sample_rate=192000, sound_source="Towed Array")

        assert settings.sample_rate == (192000,)
        assert settings.sound_source == ("Towed Array",)

    def test_defaults(self):
        settings = DataSettings()

        assert settings.sample_rate == ()
        assert settings.sound_source == ("Not Found",)

    def test_str_shows_values(self):
        text = str(DataSettings(sample_rate=[96000, 192000]))

        assert "Sample Rate(s): 96000, 192000" in text


class TestCruise:
    def test_holds_events(self, clicks):
        event = AcousticEvent(
            id="100",
            detectors={"Click_Detector_1": clicks},
            files=EventFiles(binaries=("a.pgdf",), database="survey.sqlite3"),
        )

        cruise = Cruise(acoustic_events=[event])

        assert cruise.event_ids() == ["100"]

    def test_rejects_non_events(self):
        with pytest.raises(ValidationError, match="only AcousticEvent"):
            Cruise(acoustic_events=[{"id": "100"}])
