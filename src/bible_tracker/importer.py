"""Import a reading plan from JSON, YAML or CSV files."""
import csv
import json
from pathlib import Path

from bible_tracker.models import ScheduleEntry
from bible_tracker.schedule import build_schedule


def read_schedule_rows(file_path: str) -> list[dict]:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        data = json.loads(path.read_text())
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text())
    elif suffix == ".csv":
        with path.open(newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f, skipinitialspace=True)
            data = [{k.strip().lower(): (v or "").strip() for k, v in row.items() if k} for row in reader]
    else:
        raise ValueError(f"Unsupported schedule format: {suffix or path.name}")

    # Plan files may be a bare list or wrapped as {"readings": [...]}
    if isinstance(data, dict):
        data = data.get("readings", [])
    if not isinstance(data, list):
        raise ValueError(f"No readings found in {path.name}")
    return data


def import_schedule(file_path: str) -> list[ScheduleEntry]:
    """Load and validate a reading plan file. Dates from YAML may arrive as date objects."""
    rows = read_schedule_rows(file_path)
    for row in rows:
        if "date" not in row or "portion" not in row:
            raise ValueError(f"Schedule row missing date or portion: {row}")
        row["date"] = str(row["date"])
    return build_schedule(rows)
