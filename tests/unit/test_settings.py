"""Tests for PamrSettings and its builder operations."""

import pytest

from pamr.constants import ModuleType
from pamr.settings import (
    PamrSettings,
    add_binaries,
    add_calibration,
    add_database,
    add_function,
    remove_function,
)


def peak(record, **kwargs):
    return {"peak": 1}


class TestPamrSettings:
    def test_empty_settings_have_every_module_type(self):
        settings = PamrSettings()

        assert settings.db == ()
        assert settings.binaries.folders == ()
        assert set(settings.functions) == set(ModuleType)
        assert all(functions == {} for functions in settings.functions.values())
        assert set(settings.calibration) == set(ModuleType)

    def test_partial_registry_is_completed(self):
        settings = PamrSettings(functions={"ClickDetector": {"peak": peak}})

        assert settings.functions[ModuleType.CLICK_DETECTOR] == {"peak": peak}
        assert settings.functions[ModuleType.CEPSTRUM] == {}

    def test_summary_lists_databases_and_functions(self, tmp_path):
        db = tmp_path / "survey.sqlite3"
        db.touch()
        settings = add_function(add_database(PamrSettings(), db), "ClickDetector", "peak", peak)

        summary = str(settings)

        assert "1 database(s)" in summary
        assert "survey.sqlite3" in summary
        assert '1 function(s) for module type "ClickDetector"' in summary
        assert "0 binary folder(s)" in summary


class TestAddDatabase:
    def test_appends_existing_database(self, tmp_path):
        db = tmp_path / "a.sqlite3"
        db.touch()

        settings = add_database(PamrSettings(), db)

        assert settings.db == (str(db),)

    def test_duplicate_paths_are_appended(self, tmp_path):
        db = tmp_path / "a.sqlite3"
        db.touch()

        settings = add_database(add_database(PamrSettings(), db), db)

        assert settings.db == (str(db), str(db))

    def test_missing_database_lists_paths_and_leaves_settings(self, tmp_path):
        good = tmp_path / "a.sqlite3"
        good.touch()
        original = PamrSettings()

        with pytest.raises(FileNotFoundError) as exc_info:
            add_database(original, [good, tmp_path / "b.sqlite3", tmp_path / "c.sqlite3"])

        assert "b.sqlite3" in str(exc_info.value)
        assert "c.sqlite3" in str(exc_info.value)
        assert original.db == ()

    def test_original_settings_unchanged(self, tmp_path):
        db = tmp_path / "a.sqlite3"
        db.touch()
        original = PamrSettings()

        add_database(original, db)

        assert original.db == ()


class TestAddBinaries:
    def test_collects_files_recursively(self, tmp_path):
        (tmp_path / "bin" / "day1").mkdir(parents=True)
        (tmp_path / "bin" / "day1" / "b.pgdf").touch()
        (tmp_path / "bin" / "a.pgdf").touch()
        (tmp_path / "bin" / "notes.txt").touch()

        settings = add_binaries(PamrSettings(), tmp_path / "bin")

        assert settings.binaries.folders == (str(tmp_path / "bin"),)
        assert [p.rsplit("/", 1)[-1] for p in settings.binaries.files] == ["a.pgdf", "b.pgdf"]

    def test_custom_pattern(self, tmp_path):
        (tmp_path / "x.pgdf.json").touch()

        settings = add_binaries(PamrSettings(), tmp_path, "*.pgdf.json")

        assert len(settings.binaries.files) == 1

    def test_missing_folder(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            add_binaries(PamrSettings(), tmp_path / "nope")


class TestFunctions:
    def test_add_and_remove_function(self):
        settings = add_function(PamrSettings(), ModuleType.CLICK_DETECTOR, "peak", peak)
        assert "peak" in settings.functions[ModuleType.CLICK_DETECTOR]

        settings = remove_function(settings, "ClickDetector", "peak")
        assert settings.functions[ModuleType.CLICK_DETECTOR] == {}

    def test_remove_missing_function_is_ignored(self):
        settings = remove_function(PamrSettings(), "Cepstrum", "nothing")

        assert settings.functions[ModuleType.CEPSTRUM] == {}

    def test_add_function_does_not_mutate_original(self):
        original = PamrSettings()

        add_function(original, "ClickDetector", "peak", peak)

        assert original.functions[ModuleType.CLICK_DETECTOR] == {}

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            add_function(PamrSettings(), "ClickDetector", "peak", 3)

    def test_rejects_unknown_module(self):
        with pytest.raises(ValueError):
            add_function(PamrSettings(), "Spectrogram", "peak", peak)

    def test_add_calibration(self):
        settings = add_calibration(PamrSettings(), "ClickDetector", "hydrophone", peak)

        assert settings.calibration[ModuleType.CLICK_DETECTOR] == {"hydrophone": peak}
