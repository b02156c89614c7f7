"""
Inventory Operations.

Import stock movements, run ABC analyses and demand forecasts, and
store the results per tenant. The calculations themselves live in
classification_ops; this module reads inputs from and writes results
to the database.
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Dict, Any, Optional, Union

import pandas as pd

from config.app_context import AppContext
from data.interface import InventoryRepository
from domain.models import ClassificationRecord, DemandForecast
from domain.exceptions import ImportValidationError, ValidationError
from services.movement_reader import MovementReader
from .classification_ops import (
    ForecastStrategy,
    aggregate_movements,
    build_demand_history,
    classify_abc,
    forecast_demand,
    get_classification_summary,
)

logger = logging.getLogger(__name__)


def import_movements_from_file(
    db: InventoryRepository,
    ctx: AppContext,
    file_path: Union[Path, str],
) -> Dict[str, Any]:
    """
    Import stock movements from an Excel or CSV export.

    Invalid rows are skipped and reported; the valid ones are stored in
    one transaction.

    Returns:
        {"imported": n, "skipped": [{"row": i, "reason": str}]}

    Raises:
        ImportValidationError: Unreadable file, missing columns, or no valid rows

    Example:
        >>> result = import_movements_from_file(db, ctx, Path("movements.xlsx"))
        >>> result["imported"]
        120
    """
    tenant_id = ctx.require_tenant()
    logger.info(f"Importing movements from {file_path} for tenant {tenant_id}")

    reader = MovementReader(file_path)
    movements = reader.read_movements()

    if not movements:
        raise ImportValidationError(
            "No valid movements found in file",
            details={"file": str(file_path), "skipped": len(reader.skipped_rows)},
        )

    imported = db.save_movements(movements, tenant_id)
    logger.info(f"Imported {imported} movements ({len(reader.skipped_rows)} skipped)")

    return {"imported": imported, "skipped": reader.skipped_rows}


def run_abc_analysis(
    db: InventoryRepository,
    ctx: AppContext,
    period_start: datetime,
    period_end: datetime,
) -> Dict[str, Any]:
    """
    Classify the tenant's parts by consumption value for a period.

    All records of one run share an analysis_run_id.

    Returns:
        {"analysis_run_id": str, "records": [ClassificationRecord], "summary": {...}}

    Raises:
        ValidationError: period_end before period_start
    """
    tenant_id = ctx.require_tenant()
    if period_end < period_start:
        raise ValidationError(
            "period_end must not be before period_start",
            details={"period_start": period_start, "period_end": period_end},
        )

    movements = db.get_movements(tenant_id, movement_type="OUT", start=period_start, end=period_end)
    aggregated = aggregate_movements(movements, period_start, period_end)

    analysis_run_id = str(uuid.uuid4())
    records = classify_abc(aggregated, analysis_run_id=analysis_run_id)

    if records:
        db.save_classifications(
            analysis_run_id,
            period_start,
            period_end,
            [_record_to_dict(r) for r in records],
            tenant_id,
        )

    summary = get_classification_summary(records)
    logger.info(
        f"ABC analysis {analysis_run_id} for tenant {tenant_id}: "
        f"{len(records)} part/locations from {len(movements)} movements"
    )

    return {"analysis_run_id": analysis_run_id, "records": records, "summary": summary}


def _record_to_dict(record: ClassificationRecord) -> Dict[str, Any]:
    return {
        "part_id": record.part_id,
        "location_id": record.location_id,
        "total_value_consumed": record.total_value_consumed,
        "total_quantity": record.total_quantity,
        "movement_frequency": record.movement_frequency,
        "percentage_of_total_value": record.percentage_of_total_value,
        "cumulative_percentage": record.cumulative_percentage,
        "abc_classification": record.abc_classification,
    }


def get_latest_classification(
    db: InventoryRepository,
    ctx: AppContext,
    analysis_run_id: Optional[str] = None,
) -> List[ClassificationRecord]:
    """Stored records of a run (the latest run by default), in rank order."""
    rows = db.get_classifications(ctx.require_tenant(), analysis_run_id)
    return [
        ClassificationRecord(
            part_id=row["part_id"],
            location_id=row["location_id"],
            total_value_consumed=row["total_value_consumed"],
            percentage_of_total_value=row["percentage_of_total_value"],
            cumulative_percentage=row["cumulative_percentage"],
            abc_classification=row["abc_classification"],
            total_quantity=row["total_quantity"],
            movement_frequency=row["movement_frequency"],
            analysis_run_id=row["analysis_run_id"],
        )
        for row in rows
    ]


def generate_demand_forecast(
    db: InventoryRepository,
    ctx: AppContext,
    part_id: str,
    periods: Optional[int] = None,
    lookback_months: Optional[int] = None,
    strategy: Optional[ForecastStrategy] = None,
    as_of: Optional[datetime] = None,
) -> List[DemandForecast]:
    """
    Forecast monthly demand for a part and store the forecasts.

    Args:
        periods: Future months (default settings.forecast_periods)
        lookback_months: History window (default settings.lookback_months)
        strategy: Forecasting model (default moving average)
        as_of: Reference date (default now); forecasts start the next month

    Raises:
        ValidationError: Empty part_id or non-positive periods/lookback
    """
    tenant_id = ctx.require_tenant()
    if not part_id or not str(part_id).strip():
        raise ValidationError("part_id cannot be empty")

    periods = periods if periods is not None else ctx.settings.forecast_periods
    lookback_months = lookback_months if lookback_months is not None else ctx.settings.lookback_months
    as_of = as_of or datetime.now()

    if periods < 1 or lookback_months < 1:
        raise ValidationError(
            "periods and lookback_months must be at least 1",
            details={"periods": periods, "lookback_months": lookback_months},
        )

    movements = db.get_movements(tenant_id, part_id=part_id, movement_type="OUT", end=as_of)
    history = build_demand_history(movements, part_id, as_of, lookback_months)
    forecasts = forecast_demand(history, part_id, as_of, periods=periods, strategy=strategy)

    db.save_forecasts(
        [
            {
                "part_id": f.part_id,
                "forecast_date": f.forecast_date,
                "predicted_demand": f.predicted_demand,
                "lower_bound": f.lower_bound,
                "upper_bound": f.upper_bound,
                "historical_periods_used": f.historical_periods_used,
                "method": f.method,
                "reorder_alert": f.reorder_alert,
            }
            for f in forecasts
        ],
        tenant_id,
    )

    logger.info(f"Stored {len(forecasts)} forecasts for part {part_id} (tenant {tenant_id})")
    return forecasts


def export_classification(
    db: InventoryRepository,
    ctx: AppContext,
    output_path: Union[Path, str],
    analysis_run_id: Optional[str] = None,
) -> Path:
    """
    Write a stored ABC run to an Excel (.xlsx) or CSV file.

    Raises:
        ValidationError: Unsupported extension or no stored run
    """
    output_path = Path(output_path)
    suffix = output_path.suffix.lower()
    if suffix not in (".xlsx", ".csv"):
        raise ValidationError(
            f"Unsupported export format: {suffix}",
            details={"allowed": [".xlsx", ".csv"]},
        )

    records = get_latest_classification(db, ctx, analysis_run_id)
    if not records:
        raise ValidationError("No ABC analysis stored", details={"analysis_run_id": analysis_run_id})

    df = pd.DataFrame([_record_to_dict(r) for r in records])
    df.insert(0, "rank", range(1, len(df) + 1))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".xlsx":
        df.to_excel(output_path, index=False, sheet_name="ABC", engine="openpyxl")
    else:
        df.to_csv(output_path, index=False)

    logger.info(f"Exported {len(df)} classification records to {output_path}")
    return output_path
