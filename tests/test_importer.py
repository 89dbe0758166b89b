# tests/test_importer.py
import json

import pytest

from bible_tracker.importer import import_schedule, read_schedule_rows


def test_import_json_list(tmp_path):
    f = tmp_path / "plan.json"
    f.write_text(json.dumps([
        {"date": "2026-02-03", "portion": "Exodus 4-6", "day": "Tuesday"},
        {"date": "2026-02-02", "portion": "Exodus 1-3", "day": "Monday"},
    ]))
    schedule = import_schedule(str(f))
    assert [e.date for e in schedule] == ["2026-02-02", "2026-02-03"]
    assert schedule[0].portion == "Exodus 1-3"


def test_import_json_wrapped(tmp_path):
    f = tmp_path / "plan.json"
    f.write_text(json.dumps({"readings": [{"date": "2026-02-02", "portion": "Exodus 1-3"}]}))
    schedule = import_schedule(str(f))
    assert schedule[0].weekday == "Monday"


def test_import_yaml_dates(tmp_path):
    f = tmp_path / "plan.yaml"
    f.write_text(
        "readings:\n"
        "  - date: 2026-02-02\n"
        "    portion: Exodus 1-3\n"
        "    day: Monday\n"
        "  - date: 2026-02-03\n"
        "    portion: Exodus 4-6\n"
    )
    schedule = import_schedule(str(f))
    assert [e.date for e in schedule] == ["2026-02-02", "2026-02-03"]
    assert schedule[1].weekday == "Tuesday"


def test_import_csv(tmp_path):
    f = tmp_path / "plan.csv"
    f.write_text("Date, Portion, Day\n2026-02-02, Exodus 1-3, Monday\n2026-02-03, Exodus 4-6,\n")
    schedule = import_schedule(str(f))
    assert len(schedule) == 2
    assert schedule[0].portion == "Exodus 1-3"
    assert schedule[1].weekday == "Tuesday"


def test_unsupported_suffix(tmp_path):
    f = tmp_path / "plan.txt"
    f.write_text("Genesis 1-3")
    with pytest.raises(ValueError, match="Unsupported"):
        read_schedule_rows(str(f))


def test_missing_portion(tmp_path):
    f = tmp_path / "plan.json"
    f.write_text(json.dumps([{"date": "2026-02-02"}]))
    with pytest.raises(ValueError, match="missing date or portion"):
        import_schedule(str(f))


def test_not_a_list(tmp_path):
    f = tmp_path / "plan.json"
    f.write_text('"Genesis"')
    with pytest.raises(ValueError, match="No readings"):
        import_schedule(str(f))


def test_duplicate_dates_rejected(tmp_path):
    f = tmp_path / "plan.json"
    f.write_text(json.dumps([
        {"date": "2026-02-02", "portion": "Exodus 1-3"},
        {"date": "2026-02-02", "portion": "Exodus 4-6"},
    ]))
    with pytest.raises(ValueError, match="Duplicate"):
        import_schedule(str(f))
