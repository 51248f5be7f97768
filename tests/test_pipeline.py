import json

import pytest

import main
from shelfstats.config import Settings
from shelfstats.exceptions import ConfigError

JAN_1_2024 = 1704067200


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("SHELFSTATS_TIMEZONE", "Europe/Rome")
    monkeypatch.setenv("SHELFSTATS_DAY_START_TIME", "03:30")
    monkeypatch.setenv("SHELFSTATS_MIN_PAGES_PER_DAY", "5")
    settings = Settings(_env_file=None)

    time_config = settings.time_config()
    assert time_config.timezone.key == "Europe/Rome"
    assert time_config.day_start_minutes == 210
    assert settings.min_pages_per_day == 5
    assert settings.completion_config().min_completion_percentage == 0.75


def test_settings_reject_bad_day_start():
    settings = Settings(_env_file=None, day_start_time="25:00")
    with pytest.raises(ConfigError):
        settings.time_config()


@pytest.fixture
def configured(monkeypatch, statistics_db, tmp_path):
    monkeypatch.setattr(main.settings, "statistics_db_path", statistics_db)
    monkeypatch.setattr(main.settings, "output_dir", tmp_path / "output")
    monkeypatch.setattr(main.settings, "timezone", "UTC")
    monkeypatch.setattr(main.settings, "day_start_time", None)
    monkeypatch.setattr(main.settings, "books_path", None)
    monkeypatch.setattr(main.settings, "min_pages_per_day", None)
    monkeypatch.setattr(main.settings, "min_time_per_day", None)
    return tmp_path / "output"


def test_run_exports_everything(configured):
    main.run(now=JAN_1_2024 + 86400 + 60)

    statistics = json.loads((configured / "statistics.json").read_text(encoding="utf-8"))
    assert statistics["total_page_reads"] == 12
    assert statistics["current_streak"]["days"] == 2

    # Dune: 10 pages read in full on 2024-01-01
    completions = json.loads((configured / "completions.json").read_text(encoding="utf-8"))
    assert list(completions) == ["aaa"]

    assert (configured / "books.json").exists()
    assert (configured / "calendar" / "2024-01.json").exists()
    assert (configured / "recap" / "2024.json").exists()


def test_run_with_library_filter(configured, monkeypatch, tmp_path):
    library = tmp_path / "library"
    library.mkdir()
    (library / "unrelated.epub").write_bytes(b"no statistics for this one")
    monkeypatch.setattr(main.settings, "books_path", library)
    monkeypatch.setattr(main.settings, "include_all_stats", False)

    main.run(now=JAN_1_2024)

    statistics = json.loads((configured / "statistics.json").read_text(encoding="utf-8"))
    assert statistics["total_page_reads"] == 0


def test_main_reports_errors(configured, monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(main, "setup_logging", lambda level: None)
    monkeypatch.setattr(main.settings, "statistics_db_path", tmp_path / "missing.sqlite3")

    assert main.main() == 1
    assert "not found" in capsys.readouterr().err
