import json
import os
from pathlib import Path
import subprocess
import sys


def _base_env(tmp_path: Path) -> dict[str, str]:
    env = os.environ.copy()
    env["DATABASE_URL"] = f"sqlite:///{tmp_path / 'cli.db'}"
    env["INPUT_DIR"] = str(tmp_path / "data" / "input")
    env["MAX_WRITE_RETRIES"] = "1"
    env["RETRY_BACKOFF_SECONDS"] = "0"
    return env


def _run(tmp_path: Path, *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "freightdash.main", *args],
        cwd=Path(__file__).resolve().parents[1],
        env=_base_env(tmp_path),
        check=False,
        capture_output=True,
        text=True,
    )


def _write_export(tmp_path: Path) -> Path:
    input_dir = tmp_path / "data" / "input"
    input_dir.mkdir(parents=True, exist_ok=True)
    rows = [
        {
            "indent": "A1",
            "indent_date": "05-10-2025",
            "range": "0-100Km",
            "material": "20L Buckets",
            "no_of_buckets": "100",
            "total_load": "1,000",
            "total_cost": "500",
            "profit_loss": "50",
            "total_km": "80",
            "vehicle_number": "HR38AC7854",
            "remarks": "",
            "freight_tiger_month": "Oct'25",
            "location": "Panipat",
        },
        {
            "indent": "A2",
            "indent_date": "2025-10-06",
            "range": "101-250Km",
            "material": "20L Buckets",
            "no_of_buckets": 50,
            "total_load": 1000,
            "total_cost": 700,
            "profit_loss": "-",
            "total_km": 160,
            "vehicle_number": "HR38AC7854",
            "remarks": "2nd trip",
            "freight_tiger_month": "0ct-25",
            "location": "Karnal",
        },
        {
            "indent": "A3",
            "indent_date": "07/10/2025",
            "range": "",
            "material": "20L Buckets",
            "no_of_buckets": 10,
            "total_load": 1000,
            "vehicle_number": "HR38AC7243",
        },
    ]
    input_file = input_dir / "trips.jsonl"
    with input_file.open("w", encoding="utf-8") as outfile:
        for row in rows:
            outfile.write(json.dumps(row))
            outfile.write("\n")
    return input_file


def test_cli_snapshot_without_data_exits_with_no_data_code(tmp_path: Path) -> None:
    proc = _run(tmp_path, "snapshot")

    assert proc.returncode == 2
    assert "status=empty" in proc.stdout


def test_cli_reload_fails_on_missing_input(tmp_path: Path) -> None:
    proc = _run(tmp_path, "reload", "--input", str(tmp_path / "missing.jsonl"))

    assert proc.returncode == 1
    assert "status=failed" in proc.stdout


def test_cli_reload_then_snapshot(tmp_path: Path) -> None:
    _write_export(tmp_path)

    reload_proc = _run(tmp_path, "reload")
    assert reload_proc.returncode == 0
    assert "status=succeeded loaded=3" in reload_proc.stdout

    snapshot_proc = _run(tmp_path, "snapshot", "--view", "summary_cards")
    assert snapshot_proc.returncode == 0
    cards = json.loads(snapshot_proc.stdout)
    assert cards["indent_count"] == 3
    assert cards["trip_count"] == 2
    assert cards["total_load"] == 3000
    assert cards["bucket_units"] == 150
    assert cards["total_revenue"] == 100 * 21 + 50 * 40
    assert cards["vehicle_day_trips"] == 3


def test_cli_recompute_and_windowed_query(tmp_path: Path) -> None:
    input_file = _write_export(tmp_path)
    assert _run(tmp_path, "reload", "--input", str(input_file)).returncode == 0

    recompute_proc = _run(tmp_path, "recompute")
    assert recompute_proc.returncode == 0
    assert "status=succeeded records=3" in recompute_proc.stdout

    query_proc = _run(tmp_path, "query", "range_wise", "--from", "06-10-2025", "--to", "2025-10-07")
    assert query_proc.returncode == 0
    table = json.loads(query_proc.stdout)
    assert table["total_rows"] == 1
    assert [row["row_count"] for row in table["rows"]] == [0, 1, 0, 0]

    daily_proc = _run(tmp_path, "query", "revenue_over_time", "--granularity", "daily")
    assert daily_proc.returncode == 0
    points = json.loads(daily_proc.stdout)
    assert [point["period"] for point in points] == ["2025-10-05", "2025-10-06"]


def test_cli_recompute_without_data_exits_with_no_data_code(tmp_path: Path) -> None:
    proc = _run(tmp_path, "recompute")

    assert proc.returncode == 2
    assert "status=empty" in proc.stdout
