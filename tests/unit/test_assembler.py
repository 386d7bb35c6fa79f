"""Tests for grouping detections into AcousticEvents."""

import numpy as np
import pandas as pd
import pytest

from pamr.errors import NoEventsError
from pamr.pipeline.assembler import (
    assemble_all_event,
    assemble_db_events,
    distinct_rows,
    join_binary_detections,
    split_by_detector,
)


def binary_table(file_name, uids, detector="Click_Detector_0", **measurements):
    return pd.DataFrame(
        {
            "UID": uids,
            "UTC": [None] * len(uids),
            "detectorName": [detector] * len(uids),
            "BinaryFile": [file_name] * len(uids),
            "sampleRate": [0] * len(uids),
            **measurements,
        }
    )


@pytest.fixture
def db_detections():
    return pd.DataFrame(
        {
            "UID": [1, 2, 3, 4],
            "parentUID": [100, 100, 200, 200],
            "BinaryFile": ["a.pgdf", "a.pgdf", "b.pgdf", "b.pgdf"],
            "SystemType": ["Towed Array"] * 4,
            "sampleRate": [192000] * 4,
        }
    )


def joined_tables(db_detections):
    a = join_binary_detections(
        db_detections[db_detections["BinaryFile"] == "a.pgdf"],
        binary_table("a.pgdf", [1, 2, 99], peak=[1.0, 2.0, 3.0]),
    )
    b = join_binary_detections(
        db_detections[db_detections["BinaryFile"] == "b.pgdf"],
        pd.concat(
            [
                binary_table("b.pgdf", [3], peak=[4.0]),
                binary_table("b.pgdf", [4], detector="Whistle_0", freq=[9000.0]),
            ],
            ignore_index=True,
        ),
    )
    return [a, b]


class TestJoinAndDistinct:
    def test_join_keeps_only_database_matches(self, db_detections):
        a, _ = joined_tables(db_detections)

        assert sorted(a["UID"]) == [1, 2]
        assert set(a["sampleRate"]) == {192000}
        assert set(a["parentUID"]) == {100}

    def test_identical_tables_are_not_doubled(self):
        table = binary_table("a.pgdf", [1, 2], peak=[1.0, 2.0])

        detectors = split_by_detector([table, table.copy()])

        assert len(detectors["Click_Detector_0"]) == 2

    def test_distinct_rows_with_array_columns(self):
        table = pd.DataFrame(
            {"UID": [1, 1], "wave": [np.array([1, 2]), np.array([1, 2])]}
        )

        assert len(distinct_rows(table)) == 1


class TestAssembleDbEvents:
    def test_one_event_per_parent(self, db_detections):
        events = assemble_db_events(
            joined_tables(db_detections), db_detections, "/data/survey.sqlite3"
        )

        assert [e.id for e in events] == ["100", "200"]
        first, second = events
        assert first.detector_names == ["Click_Detector_0"]
        assert sorted(second.detector_names) == ["Click_Detector_0", "Whistle_0"]
        assert first.files.database == "survey.sqlite3"
        assert first.files.binaries == ("a.pgdf",)
        assert second.files.binaries == ("b.pgdf",)
        assert first.settings.sample_rate == (192000,)
        assert first.settings.sound_source == ("Towed Array",)

    def test_detector_without_rows_is_omitted(self, db_detections):
        events = assemble_db_events(
            joined_tables(db_detections), db_detections, "survey.sqlite3"
        )

        assert "Whistle_0" not in events[0].detectors
        assert "freq" not in events[0].detectors["Click_Detector_0"].columns

    def test_input_order_does_not_matter(self, db_detections):
        tables = joined_tables(db_detections)

        forward = assemble_db_events(tables, db_detections, "survey.sqlite3")
        backward = assemble_db_events(tables[::-1], db_detections, "survey.sqlite3")

        assert [e.id for e in forward] == [e.id for e in backward]
        for f, b in zip(forward, backward, strict=True):
            assert f.detector_names == b.detector_names
            for name in f.detectors:
                pd.testing.assert_frame_equal(f.detectors[name], b.detectors[name])

    def test_no_matches(self, db_detections):
        unmatched = join_binary_detections(db_detections, binary_table("a.pgdf", [50]))

        with pytest.raises(NoEventsError, match="survey.sqlite3"):
            assemble_db_events([unmatched], db_detections, "survey.sqlite3")


class TestAssembleAllEvent:
    def test_union_of_same_detector(self):
        event = assemble_all_event(
            [binary_table("b.pgdf", [3, 4]), binary_table("a.pgdf", [1, 2])], 192000
        )

        assert event.id == "all"
        assert event.files.database == "None"
        assert event.files.binaries == ("a.pgdf", "b.pgdf")
        assert list(event.detectors["Click_Detector_0"]["UID"]) == [1, 2, 3, 4]
        assert event.settings.sample_rate == (192000,)

    def test_nothing_to_assemble(self):
        with pytest.raises(NoEventsError):
            assemble_all_event([binary_table("a.pgdf", [])], 192000)


class TestDetectorColumns:
    def test_null_column_is_kept(self):
        table = binary_table("a.pgdf", [1, 2], note=[None, None])

        detectors = split_by_detector([table])

        assert "note" in detectors["Click_Detector_0"].columns

    def test_keep_columns_survive_shared_files(self):
        table = pd.concat(
            [
                binary_table("b.pgdf", [3], peak=[4.0], comment=[None]),
                binary_table("b.pgdf", [4], detector="Whistle_0", comment=["tonal"]),
            ],
            ignore_index=True,
        )

        detectors = split_by_detector([table], keep_columns=["comment"])

        assert "comment" in detectors["Click_Detector_0"].columns
        assert "peak" not in detectors["Whistle_0"].columns

    def test_database_columns_kept_when_null(self, db_detections):
        db_detections = db_detections.assign(comment=None)

        events = assemble_db_events(
            joined_tables(db_detections), db_detections, "survey.sqlite3"
        )

        for event in events:
            for table in event.detectors.values():
                assert "comment" in table.columns
