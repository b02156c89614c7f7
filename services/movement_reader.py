"""
Movement Reader Service.

Reads stock movement exports (Excel or CSV) into plain movement dicts
ready for InventoryRepository.save_movements.

Uses pandas (openpyxl engine for .xlsx) for file processing.
"""

import logging
from pathlib import Path
from typing import List, Dict, Any, Optional

import pandas as pd

from config.constants import MOVEMENT_FILE_EXTENSIONS, CSV_EXTENSIONS
from domain.exceptions import ImportValidationError, ValidationError
from domain.validators import validate_file_path

logger = logging.getLogger(__name__)


# Column name mappings for flexible matching
PART_VARIANTS = ['part_id', 'part number', 'part', 'artikelnummer', 'sku']
LOCATION_VARIANTS = ['location_id', 'location', 'warehouse', 'plats']
QUANTITY_VARIANTS = ['quantity', 'qty', 'antal', 'saldoförändring']
UNIT_COST_VARIANTS = ['unit_cost', 'unit cost', 'cost', 'price', 'styckpris']
TYPE_VARIANTS = ['movement_type', 'type', 'direction']
DATE_VARIANTS = ['executed_at', 'date', 'executed', 'timestamp', 'datum']

IN_ALIASES = {'in', 'receipt', 'inbound'}
OUT_ALIASES = {'out', 'issue', 'outbound', 'consumption'}


class MovementReader:
    """
    Stock movement file reader.

    Required columns: part, quantity, date. Location, unit cost and
    movement type are optional; a file without a type column is read as
    consumption (OUT).
    """

    def __init__(self, file_path: Path):
        """
        Initialize movement reader.

        Args:
            file_path: Path to .xlsx, .xls or .csv file

        Raises:
            ImportValidationError: If file is invalid or doesn't exist
        """
        try:
            self.file_path = validate_file_path(
                file_path,
                must_exist=True,
                allowed_extensions=MOVEMENT_FILE_EXTENSIONS,
            )
        except ValidationError as e:
            raise ImportValidationError(e.message, details=e.details) from e

        self.skipped_rows: List[Dict[str, Any]] = []
        logger.info(f"Initialized movement reader for: {self.file_path}")

    def _find_column(self, columns: List[str], search_terms: List[str]) -> Optional[str]:
        """
        Find column name using flexible matching.

        Tries exact match first, then partial match (case-insensitive).
        """
        for term in search_terms:
            for col in columns:
                if term.lower() == str(col).strip().lower():
                    logger.debug(f"Found exact match: '{col}' for search term '{term}'")
                    return col

        for term in search_terms:
            for col in columns:
                if term.lower() in str(col).lower():
                    logger.debug(f"Found partial match: '{col}' contains '{term}'")
                    return col

        return None

    def read_dataframe(self, sheet_name: Optional[str] = None) -> pd.DataFrame:
        """
        Read the file into a cleaned DataFrame.

        Raises:
            ImportValidationError: If file cannot be read
        """
        try:
            if self.file_path.suffix.lower() in CSV_EXTENSIONS:
                df = pd.read_csv(self.file_path)
            else:
                df = pd.read_excel(self.file_path, sheet_name=sheet_name or 0)
        except Exception as e:
            raise ImportValidationError(
                f"Could not read movement file: {e}",
                details={"file": str(self.file_path), "error": str(e)},
            ) from e

        df = self._clean_dataframe(df)
        logger.debug(f"Read {len(df)} rows from {self.file_path.name}")
        return df

    def _clean_dataframe(self, df: pd.DataFrame) -> pd.DataFrame:
        """Remove empty rows and strip whitespace from text columns."""
        df = df.dropna(how="all")

        for col in df.columns:
            if df[col].dtype == "object":
                df[col] = df[col].map(lambda v: v.strip() if isinstance(v, str) else v)

        return df

    def _safe_str(self, value, default: str = "") -> str:
        """
        Convert value to string safely, handling None/NaN.

        Examples:
            >>> _safe_str(None) → ""
            >>> _safe_str(" P-100 ") → "P-100"
        """
        if value is None or pd.isna(value):
            return default
        return str(value).strip()

    def _normalize_type(self, value) -> Optional[str]:
        text = self._safe_str(value).lower()
        if not text:
            return "OUT"
        if text in IN_ALIASES:
            return "IN"
        if text in OUT_ALIASES:
            return "OUT"
        return None

    def read_movements(self) -> List[Dict[str, Any]]:
        """
        Read movements with flexible column matching.

        Rows without part, with an unparseable date or quantity, a
        negative quantity, or an unknown movement type are skipped and
        recorded in self.skipped_rows.

        Returns:
            List of movement dicts (part_id, location_id, quantity,
            unit_cost, movement_type, executed_at)

        Raises:
            ImportValidationError: If required columns cannot be found
        """
        self.skipped_rows = []
        df = self.read_dataframe()
        columns = list(df.columns)

        logger.info(f"Available columns in movement file: {columns}")

        part_col = self._find_column(columns, PART_VARIANTS)
        quantity_col = self._find_column(columns, QUANTITY_VARIANTS)
        date_col = self._find_column(columns, DATE_VARIANTS)
        location_col = self._find_column(columns, LOCATION_VARIANTS)
        cost_col = self._find_column(columns, UNIT_COST_VARIANTS)
        type_col = self._find_column(columns, TYPE_VARIANTS)

        missing = [
            name for name, col in (
                ("part", part_col), ("quantity", quantity_col), ("date", date_col)
            )
            if col is None
        ]
        if missing:
            raise ImportValidationError(
                f"Missing columns in movement file: {', '.join(missing)}",
                details={
                    "file": str(self.file_path),
                    "missing": missing,
                    "available": columns,
                },
            )

        logger.info(
            f"Using columns - Part: '{part_col}', Quantity: '{quantity_col}', "
            f"Date: '{date_col}', Location: '{location_col or 'N/A'}', "
            f"Cost: '{cost_col or 'N/A'}', Type: '{type_col or 'N/A'}'"
        )

        dates = pd.to_datetime(df[date_col], errors="coerce")
        quantities = pd.to_numeric(df[quantity_col], errors="coerce")
        costs = pd.to_numeric(df[cost_col], errors="coerce") if cost_col else None

        movements = []
        for idx, row in df.iterrows():
            part_id = self._safe_str(row.get(part_col))
            if not part_id:
                self._skip(idx, "no part")
                continue

            if pd.isna(dates[idx]):
                self._skip(idx, "invalid date")
                continue

            quantity = quantities[idx]
            if pd.isna(quantity) or quantity < 0:
                self._skip(idx, "invalid quantity")
                continue

            movement_type = self._normalize_type(row.get(type_col)) if type_col else "OUT"
            if movement_type is None:
                self._skip(idx, f"unknown movement type '{row.get(type_col)}'")
                continue

            unit_cost = 0.0
            if costs is not None and not pd.isna(costs[idx]):
                unit_cost = float(costs[idx])

            movements.append({
                "part_id": part_id,
                "location_id": self._safe_str(row.get(location_col)) if location_col else "",
                "quantity": float(quantity),
                "unit_cost": unit_cost,
                "movement_type": movement_type,
                "executed_at": dates[idx].to_pydatetime(),
            })

        logger.info(
            f"Read {len(movements)} movements from {self.file_path.name} "
            f"({len(self.skipped_rows)} rows skipped)"
        )
        return movements

    def _skip(self, idx, reason: str) -> None:
        logger.warning(f"Skipping row {idx}: {reason}")
        self.skipped_rows.append({"row": int(idx), "reason": reason})
