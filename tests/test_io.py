"""Tests for survey loading and report persistence."""

import json
import tempfile

import pytest

from tvconjoint import DataError, StudyConfig, load_survey, run_pipeline, save_report
from tvconjoint.io import rename_survey_columns
from tvconjoint.models import DEFAULT_COLUMN_MAP


@pytest.fixture
def raw_survey(survey_data):
    """Survey table with the original spreadsheet headers."""
    reverse = {key.value: raw for raw, key in DEFAULT_COLUMN_MAP.items()}
    return survey_data.rename(columns=reverse)


class TestLoadSurvey:

    def test_csv_headers_are_renamed(self, tmp_path, raw_survey, survey_data):
        path = tmp_path / "survey.csv"
        raw_survey.to_csv(path, index=False)

        loaded = load_survey(path, StudyConfig())

        assert list(loaded.columns) == list(survey_data.columns)

    def test_rename_leaves_other_columns(self, raw_survey):
        renamed = rename_survey_columns(raw_survey, StudyConfig())

        assert "Preference Alice" in renamed.columns
        assert "brand" in renamed.columns
        assert "Sony = 1" not in renamed.columns

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataError, match="not found"):
            load_survey(tmp_path / "missing.csv", StudyConfig())

    def test_unsupported_type(self, tmp_path):
        path = tmp_path / "survey.txt"
        path.write_text("x")

        with pytest.raises(DataError, match="Unsupported"):
            load_survey(path, StudyConfig())


class TestSaveReport:

    def test_writes_json_and_csv(self, tmp_path, survey_data, config):
        report = run_pipeline(survey_data, config)

        paths = save_report(report, tmp_path)

        assert sorted(p.suffix for p in paths) == [".csv", ".json"]
        assert all(p.parent == tmp_path / "reports" for p in paths)
        assert all(p.name.startswith("tv_conjoint_study_") for p in paths)
        payload = json.loads(next(p for p in paths if p.suffix == ".json").read_text())
        assert payload["config_name"] == "TV conjoint study"

    def test_unwritable_dir_falls_back_to_temp(self, tmp_path, survey_data, config, monkeypatch):
        monkeypatch.setattr(tempfile, "tempdir", str(tmp_path / "tmp"))
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")

        paths = save_report(run_pipeline(survey_data, config), blocker)

        assert len(paths) == 2
        assert all(p.parent == tmp_path / "tmp" / "tvconjoint" for p in paths)
        assert all(p.name.startswith("tv_conjoint_study_") for p in paths)
