"""
Unit tests for the Movement Reader Service.
"""

import pytest
from datetime import datetime

import pandas as pd

from domain.exceptions import ImportValidationError
from services.movement_reader import MovementReader


@pytest.fixture
def sample_excel(tmp_path):
    """Create sample movement Excel file."""
    path = tmp_path / "movements.xlsx"
    pd.DataFrame({
        "Artikelnummer": [" P-100 ", "P-200", "P-300"],
        "Plats": ["L1", "L2", None],
        "Antal": [2, 4, 1],
        "Styckpris": [10.5, None, 3],
        "Datum": ["2025-02-01", "2025-02-02", "2025-02-03"],
    }).to_excel(path, index=False, engine="openpyxl")
    return path


def write_csv(tmp_path, data, name="movements.csv"):
    path = tmp_path / name
    pd.DataFrame(data).to_csv(path, index=False)
    return path


# ==================== Init ====================


def test_init_missing_file(tmp_path):
    with pytest.raises(ImportValidationError):
        MovementReader(tmp_path / "missing.csv")


def test_init_wrong_extension(tmp_path):
    path = tmp_path / "movements.json"
    path.write_text("{}")
    with pytest.raises(ImportValidationError):
        MovementReader(path)


# ==================== Reading ====================


def test_read_excel_with_alias_columns(sample_excel):
    movements = MovementReader(sample_excel).read_movements()

    assert movements[0] == {
        "part_id": "P-100",
        "location_id": "L1",
        "quantity": 2.0,
        "unit_cost": 10.5,
        "movement_type": "OUT",
        "executed_at": datetime(2025, 2, 1),
    }
    assert movements[1]["unit_cost"] == 0.0
    assert movements[2]["location_id"] == ""


def test_read_csv_skips_bad_rows(tmp_path):
    path = write_csv(tmp_path, {
        "part_id": ["P1", "P2", "P3", "P4", "P5"],
        "quantity": [1, "abc", -2, 3, 4],
        "movement_type": ["receipt", "out", "out", "teleport", "OUT"],
        "executed_at": ["2025-01-01", "2025-01-02", "2025-01-03", "2025-01-04", "not a date"],
    })

    reader = MovementReader(path)
    movements = reader.read_movements()

    assert [(m["part_id"], m["movement_type"]) for m in movements] == [("P1", "IN")]
    assert [s["reason"] for s in reader.skipped_rows] == [
        "invalid quantity",
        "invalid quantity",
        "unknown movement type 'teleport'",
        "invalid date",
    ]


def test_read_missing_required_columns(tmp_path):
    path = write_csv(tmp_path, {"part_id": ["P1"], "location": ["L1"]})

    with pytest.raises(ImportValidationError) as exc_info:
        MovementReader(path).read_movements()

    assert exc_info.value.details["missing"] == ["quantity", "date"]


def test_read_unreadable_excel(tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"not an excel file")

    with pytest.raises(ImportValidationError):
        MovementReader(path).read_dataframe()


def test_read_dataframe_drops_empty_rows(tmp_path):
    path = tmp_path / "gaps.csv"
    path.write_text("part,qty,date\nP1,1,2025-01-01\n,,\nP2,2,2025-01-02\n")

    assert len(MovementReader(path).read_dataframe()) == 2
