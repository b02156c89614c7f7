"""
Classification Operations.

ABC classification and demand forecasting over stock movements.
Pure functions - no database access, no side effects.

ABC banding (by consumption value):
    sort descending by value, running cumulative percentage of the
    grand total; cumulative <= 80% → A, <= 95% → B, else C.

Forecasting is a pluggable strategy; the default is a moving average
of monthly consumption over a lookback window.
"""

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from domain.exceptions import ValidationError
from domain.models import ClassificationRecord, DemandForecast, StockMovement

logger = logging.getLogger(__name__)

CLASS_A_THRESHOLD = 80.0
CLASS_B_THRESHOLD = 95.0

# Rounding applied before banding so float noise cannot move a boundary record
PERCENTAGE_PRECISION = 6

RecordLike = Union[ClassificationRecord, Dict[str, Any]]


def classify_value(cumulative_percentage: float) -> str:
    """
    Map a cumulative percentage to an ABC class.

    Examples:
        50.0 -> "A"
        80.0 -> "A"  (boundary included)
        95.0 -> "B"
        100.0 -> "C"
    """
    if cumulative_percentage <= CLASS_A_THRESHOLD:
        return "A"
    if cumulative_percentage <= CLASS_B_THRESHOLD:
        return "B"
    return "C"


def _records_to_dataframe(records: Iterable[RecordLike]) -> pd.DataFrame:
    rows = []
    for record in records:
        if isinstance(record, ClassificationRecord):
            rows.append({
                "part_id": record.part_id,
                "location_id": record.location_id,
                "total_value_consumed": record.total_value_consumed,
                "total_quantity": record.total_quantity,
                "movement_frequency": record.movement_frequency,
            })
        else:
            rows.append({
                "part_id": record["part_id"],
                "location_id": record.get("location_id") or "",
                "total_value_consumed": float(record["total_value_consumed"]),
                "total_quantity": float(record.get("total_quantity") or 0.0),
                "movement_frequency": int(record.get("movement_frequency") or 0),
            })

    return pd.DataFrame(
        rows,
        columns=[
            "part_id", "location_id", "total_value_consumed",
            "total_quantity", "movement_frequency",
        ],
    )


def classify_abc(
    records: Iterable[RecordLike],
    analysis_run_id: Optional[str] = None,
) -> List[ClassificationRecord]:
    """
    Assign ABC classes to part/location consumption records.

    Records are sorted descending by total_value_consumed. Ties are
    broken by (part_id, location_id) so the result does not depend on
    input order.

    Args:
        records: ClassificationRecord objects or dicts with part_id,
                 location_id and total_value_consumed
        analysis_run_id: Optional id stamped on every output record

    Returns:
        ClassificationRecords in ranked order with percentages and classes

    Raises:
        ValidationError: A negative total_value_consumed

    Example:
        >>> values = [500, 300, 150, 50]
        >>> result = classify_abc(
        ...     {"part_id": f"P{i}", "location_id": "L1", "total_value_consumed": v}
        ...     for i, v in enumerate(values)
        ... )
        >>> [r.abc_classification for r in result]
        ['A', 'A', 'B', 'C']
    """
    df = _records_to_dataframe(records)
    if df.empty:
        logger.info("ABC classification skipped: no records")
        return []

    if (df["total_value_consumed"] < 0).any():
        raise ValidationError(
            "total_value_consumed cannot be negative",
            details={"negative": int((df["total_value_consumed"] < 0).sum())},
        )

    df = df.sort_values(
        by=["total_value_consumed", "part_id", "location_id"],
        ascending=[False, True, True],
        kind="mergesort",
    ).reset_index(drop=True)

    grand_total = float(df["total_value_consumed"].sum())

    if grand_total <= 0:
        # Nothing consumed: no concentration to band, everything is C
        df["percentage_of_total_value"] = 0.0
        df["cumulative_percentage"] = 0.0
        df["abc_classification"] = "C"
    else:
        running = df["total_value_consumed"].cumsum()
        df["percentage_of_total_value"] = (
            df["total_value_consumed"] * 100 / grand_total
        ).round(PERCENTAGE_PRECISION)
        df["cumulative_percentage"] = (running * 100 / grand_total).round(PERCENTAGE_PRECISION)
        df["abc_classification"] = df["cumulative_percentage"].map(classify_value)

    result = [
        ClassificationRecord(
            part_id=row.part_id,
            location_id=row.location_id,
            total_value_consumed=float(row.total_value_consumed),
            percentage_of_total_value=float(row.percentage_of_total_value),
            cumulative_percentage=float(row.cumulative_percentage),
            abc_classification=row.abc_classification,
            total_quantity=float(row.total_quantity),
            movement_frequency=int(row.movement_frequency),
            analysis_run_id=analysis_run_id,
        )
        for row in df.itertuples(index=False)
    ]

    summary = get_classification_summary(result)
    logger.info(
        f"ABC classification: {summary['A']['count']} A, "
        f"{summary['B']['count']} B, {summary['C']['count']} C "
        f"(total value {grand_total:.2f})"
    )

    return result


def _movements_to_dataframe(movements: Iterable[Union[StockMovement, Dict[str, Any]]]) -> pd.DataFrame:
    rows = []
    for m in movements:
        if isinstance(m, StockMovement):
            rows.append({
                "part_id": m.part_id,
                "location_id": m.location_id,
                "quantity": m.quantity,
                "unit_cost": m.unit_cost,
                "movement_type": m.movement_type,
                "executed_at": m.executed_at,
            })
        else:
            rows.append({
                "part_id": m["part_id"],
                "location_id": m.get("location_id") or "",
                "quantity": float(m.get("quantity") or 0.0),
                "unit_cost": float(m.get("unit_cost") or 0.0),
                "movement_type": m.get("movement_type") or "OUT",
                "executed_at": m.get("executed_at"),
            })

    df = pd.DataFrame(
        rows,
        columns=["part_id", "location_id", "quantity", "unit_cost", "movement_type", "executed_at"],
    )
    df["executed_at"] = pd.to_datetime(df["executed_at"])
    return df


def aggregate_movements(
    movements: Iterable[Union[StockMovement, Dict[str, Any]]],
    period_start: datetime,
    period_end: datetime,
) -> List[Dict[str, Any]]:
    """
    Sum consumption per part/location for a period.

    Only OUT movements executed within [period_start, period_end] count.

    Returns:
        List of dicts with part_id, location_id, total_value_consumed,
        total_quantity and movement_frequency
    """
    df = _movements_to_dataframe(movements)
    if df.empty:
        return []

    mask = (
        (df["movement_type"] == "OUT")
        & (df["executed_at"] >= pd.Timestamp(period_start))
        & (df["executed_at"] <= pd.Timestamp(period_end))
    )
    consumed = df.loc[mask].copy()
    if consumed.empty:
        return []

    consumed["value"] = consumed["quantity"] * consumed["unit_cost"]
    grouped = consumed.groupby(["part_id", "location_id"], sort=True).agg(
        total_value_consumed=("value", "sum"),
        total_quantity=("quantity", "sum"),
        movement_frequency=("quantity", "size"),
    ).reset_index()

    logger.debug(f"Aggregated {len(consumed)} movements into {len(grouped)} part/location rows")

    return [
        {
            "part_id": row.part_id,
            "location_id": row.location_id,
            "total_value_consumed": float(row.total_value_consumed),
            "total_quantity": float(row.total_quantity),
            "movement_frequency": int(row.movement_frequency),
        }
        for row in grouped.itertuples(index=False)
    ]


def get_classification_summary(records: List[ClassificationRecord]) -> Dict[str, Dict[str, float]]:
    """
    Count records and value share per ABC class.

    Returns:
        {"A": {"count": n, "value": v, "value_percentage": p}, "B": ..., "C": ...}
    """
    summary = {cls: {"count": 0, "value": 0.0, "value_percentage": 0.0} for cls in ("A", "B", "C")}
    for record in records:
        bucket = summary[record.abc_classification]
        bucket["count"] += 1
        bucket["value"] += record.total_value_consumed
        bucket["value_percentage"] += record.percentage_of_total_value

    for bucket in summary.values():
        bucket["value"] = round(bucket["value"], 2)
        bucket["value_percentage"] = round(bucket["value_percentage"], 2)

    return summary


# ==================== Demand Forecasting ====================


class ForecastStrategy(ABC):
    """
    Pluggable demand forecasting model.

    A strategy turns a series of per-period consumption figures into a
    point prediction and a spread.
    """

    name = "strategy"

    @abstractmethod
    def predict(self, history: pd.Series) -> Tuple[float, float]:
        """
        Predict next-period demand.

        Args:
            history: Consumption per period, oldest first

        Returns:
            (predicted_demand, spread) where spread >= 0
        """
        pass


class MovingAverageForecast(ForecastStrategy):
    """Mean of the consumption history; spread is the standard deviation."""

    name = "simple_moving_average"

    def predict(self, history: pd.Series) -> Tuple[float, float]:
        if history.empty:
            return 0.0, 0.0
        mean = float(history.mean())
        std = float(history.std(ddof=0)) if len(history) > 1 else 0.0
        if math.isnan(std):
            std = 0.0
        return mean, std


def build_demand_history(
    movements: Iterable[Union[StockMovement, Dict[str, Any]]],
    part_id: str,
    as_of: datetime,
    lookback_months: int = 12,
) -> pd.Series:
    """
    Monthly OUT quantity for one part over the lookback window.

    The window covers the lookback_months full months before as_of's
    month. Months without consumption count as zero.

    Returns:
        Series indexed by monthly Period, oldest first
    """
    if lookback_months < 1:
        raise ValidationError("lookback_months must be at least 1", details={"lookback_months": lookback_months})

    current = pd.Period(pd.Timestamp(as_of), freq="M")
    months = pd.period_range(end=current - 1, periods=lookback_months, freq="M")

    df = _movements_to_dataframe(movements)
    if df.empty:
        return pd.Series(0.0, index=months)

    consumed = df.loc[(df["part_id"] == part_id) & (df["movement_type"] == "OUT")].copy()
    if consumed.empty:
        return pd.Series(0.0, index=months)

    consumed["month"] = consumed["executed_at"].dt.to_period("M")
    monthly = consumed.groupby("month")["quantity"].sum()

    return monthly.reindex(months, fill_value=0.0).astype(float)


def forecast_demand(
    history: pd.Series,
    part_id: str,
    as_of: datetime,
    periods: int = 12,
    strategy: Optional[ForecastStrategy] = None,
) -> List[DemandForecast]:
    """
    Produce monthly demand forecasts from a consumption history.

    Args:
        history: Output of build_demand_history
        part_id: Part being forecast
        as_of: Forecasts start the month after this date
        periods: Number of future months
        strategy: Forecasting model (default MovingAverageForecast)

    Returns:
        One DemandForecast per future month
    """
    if periods < 1:
        raise ValidationError("periods must be at least 1", details={"periods": periods})

    strategy = strategy or MovingAverageForecast()
    predicted, spread = strategy.predict(history)
    predicted = max(predicted, 0.0)

    start = pd.Period(pd.Timestamp(as_of), freq="M") + 1
    forecasts = [
        DemandForecast(
            part_id=part_id,
            forecast_date=period.to_timestamp().to_pydatetime(),
            predicted_demand=round(predicted, 4),
            lower_bound=round(max(0.0, predicted - spread), 4),
            upper_bound=round(predicted + spread, 4),
            historical_periods_used=len(history),
            method=strategy.name,
            reorder_alert=predicted > 0,
        )
        for period in pd.period_range(start=start, periods=periods, freq="M")
    ]

    logger.debug(
        f"Forecast for {part_id}: {predicted:.2f}/month over {periods} months "
        f"({strategy.name}, {len(history)} periods of history)"
    )

    return forecasts
