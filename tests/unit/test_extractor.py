"""Tests for reading grouped detections from PAMGuard databases."""

import pandas as pd
import pytest

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

from pamr.database.extractor import get_db_data, join_events
from pamr.database.session import database_scope, list_tables, read_table
from pamr.errors import (
    AmbiguousSampleRateError,
    ConfigurationError,
    NoDataError,
    SampleRateRequiredError,
)
from tests.helpers.pamguard_data import (
    acquisition_row,
    create_pamguard_db,
    detection_row,
)

pytestmark = pytest.mark.database


class TestDatabaseScope:
    def test_lists_and_reads_tables(self, event_db):
        with database_scope(event_db) as conn:
            tables = list_tables(conn)
            acquisition = read_table(conn, "Sound_Acquisition")

        assert "Click_Detector_OfflineClicks" in tables
        assert len(acquisition) == 1

    def test_missing_database(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            with database_scope(tmp_path / "missing.sqlite3"):
                pass

    def test_connection_is_read_only(self, event_db):
        with database_scope(event_db) as conn:
            with pytest.raises(OperationalError, match="readonly"):
                conn.execute(text('DELETE FROM "Sound_Acquisition"'))


class TestJoinEvents:
    def test_keeps_detections_without_event(self):
        dets = pd.DataFrame({"UID": [1, 2, 3], "parentUID": [100, 100, 200]})
        events = pd.DataFrame(
            {"UID": [100, 300], "eventType": ["BEAK", "DO"], "comment": ["a", "b"]}
        )

        joined, columns = join_events(dets, events, ["UID", "eventType", "comment"])

        assert len(joined) == 3
        assert list(joined["eventType"].iloc[:2]) == ["BEAK", "BEAK"]
        assert pd.isna(joined["eventType"].iloc[2])
        assert columns == ["UID", "eventType", "comment"]

    def test_missing_event_columns_are_skipped(self):
        dets = pd.DataFrame({"UID": [1], "parentUID": [100]})
        events = pd.DataFrame({"UID": [100]})

        joined, columns = join_events(dets, events, ["UID", "eventType", "comment"])

        assert columns == ["UID"]
        assert list(joined.columns) == ["UID", "parentUID"]


class TestGetDbData:
    def test_event_grouping(self, event_db):
        data = get_db_data(event_db, "event")

        assert len(data) == 2
        assert list(data["UID"]) == [1, 2]
        assert set(data["sampleRate"]) == {192000}
        assert set(data["SystemType"]) == {"Towed Array"}
        assert set(data["eventType"]) == {"BEAK"}
        assert list(data["BinaryFile"]) == ["Click_Detector_Clicks_20190101_000000.pgdf"] * 2
        for column in ["UTC", "Id", "UID", "parentUID", "BinaryFile", "sampleRate"]:
            assert column in data.columns

    def test_det_group_grouping_keeps_same_detections(self, event_db_factory):
        db = event_db_factory(detection_group=True)

        by_event = get_db_data(db, "event")
        by_group = get_db_data(db, "detGroup")

        assert len(by_event) == len(by_group)
        assert sorted(by_event["UID"]) == sorted(by_group["UID"])
        assert "eventType" not in by_group.columns

    def test_missing_group_tables(self, event_db):
        with pytest.raises(ConfigurationError, match='grouping method "detGroup"'):
            get_db_data(event_db, "detGroup")

    def test_unknown_grouping(self, event_db):
        with pytest.raises(ConfigurationError):
            get_db_data(event_db, "byDay")

    def test_empty_detections(self, tmp_path):
        db = create_pamguard_db(
            tmp_path / "empty.sqlite3",
            acquisition=[acquisition_row("2019-01-01 00:00:00.000", 192000)],
        )

        with pytest.raises(NoDataError, match="empty.sqlite3"):
            get_db_data(db)

    def test_missing_event_tables(self, tmp_path):
        db = tmp_path / "clicks_only.sqlite3"
        engine = create_engine(f"sqlite:///{db}")
        pd.DataFrame([detection_row(1, "2019-01-01 00:05:00.000", 100)]).to_sql(
            "Click_Detector_OfflineClicks", engine, index=False
        )
        engine.dispose()

        with pytest.raises(ConfigurationError, match="clicks_only.sqlite3"):
            get_db_data(db)

    def test_empty_acquisition_requires_rate(self, event_db_factory):
        db = event_db_factory(acquisition=[])

        with pytest.raises(SampleRateRequiredError):
            get_db_data(db)

    def test_missing_acquisition_table_uses_supplied_rate(self, event_db_factory):
        db = event_db_factory(include_acquisition=False)

        data = get_db_data(db, sample_rate=96000)

        assert set(data["sampleRate"]) == {96000}

    def test_acquisition_table_without_status(self, event_db_factory):
        db = event_db_factory(include_acquisition=False)
        engine = create_engine(f"sqlite:///{db}")
        pd.DataFrame(
            [{"UTC": "2019-01-01 00:00:00.000", "sampleRate": 192000}]
        ).to_sql("Sound_Acquisition", engine, index=False)
        engine.dispose()

        with pytest.raises(ConfigurationError, match="survey.sqlite3.*Status"):
            get_db_data(db, sample_rate=96000)

    def test_partially_missing_rates(self, event_db_factory):
        db = event_db_factory(
            acquisition=[acquisition_row("2019-01-01 00:07:00.000", 192000)]
        )

        with pytest.raises(AmbiguousSampleRateError) as exc_info:
            get_db_data(db)
        assert exc_info.value.missing == 1

        data = get_db_data(db, policy="use_mode")
        assert list(data["sampleRate"]) == [192000, 192000]

    def test_warns_on_multiple_sample_rates(self, event_db_factory, caplog):
        db = event_db_factory(
            acquisition=[
                acquisition_row("2019-01-01 00:00:00.000", 192000),
                acquisition_row("2019-01-01 00:07:00.000", 96000),
            ]
        )

        with caplog.at_level("WARNING", logger="pamr"):
            data = get_db_data(db)

        assert list(data["sampleRate"]) == [192000, 96000]
        assert "More than 1 sample rate" in caplog.text

    def test_carries_click_number(self, tmp_path):
        db = create_pamguard_db(
            tmp_path / "numbered.sqlite3",
            acquisition=[acquisition_row("2019-01-01 00:00:00.000", 192000)],
            detections=[detection_row(5, "2019-01-01 00:05:00.000", 100, click_no=0)],
            events=[{"UID": 100, "UTC": "2019-01-01 00:05:00.000"}],
        )

        data = get_db_data(db)

        assert list(data["ClickNo"]) == [0]
