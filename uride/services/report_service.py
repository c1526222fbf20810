"""
Dashboard rollups and earnings rankings.

Read-only: the driver and vehicle tables are pulled into pandas DataFrames
and aggregated there. Money stays Decimal; rankings sort on integer paise
so ties are exact.
"""

import logging
from decimal import Decimal
import pandas as pd
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from uride.extensions import db
from uride.models.compensation import CompensationKind
from uride.models.driver import Driver, DriverStatus
from uride.models.vehicle import Vehicle, VehicleOwnership, AssignmentStatus, ConditionStatus
from uride.services.errors import ServiceError

DRIVER_COLUMNS = (
    Driver.id, Driver.name, Driver.status, Driver.compensation_kind, Driver.is_online,
    Driver.total_rides, Driver.total_earnings, Driver.total_km_driven, Driver.average_rating,
    Driver.acceptance_rate, Driver.completion_rate, Driver.online_hours,
)
VEHICLE_COLUMNS = (
    Vehicle.id, Vehicle.ownership, Vehicle.assignment_status, Vehicle.condition_status,
)
VEHICLE_STATUSES = (
    AssignmentStatus.AVAILABLE.value,
    AssignmentStatus.ASSIGNED.value,
    ConditionStatus.MAINTENANCE.value,
    ConditionStatus.OUT_OF_SERVICE.value,
)


def _load_frame(columns, *criteria):
    stmt = select(*columns)
    if criteria:
        stmt = stmt.where(*criteria)
    # Keep Numeric columns as Decimal
    return pd.read_sql_query(stmt, db.session.connection(), coerce_float=False)


def _to_decimal(value):
    if value is None or (not isinstance(value, Decimal) and pd.isnull(value)):
        return Decimal("0")
    return Decimal(str(value))


def _decimal_sum(series, quantum="0.01"):
    total = sum((_to_decimal(v) for v in series), Decimal("0"))
    return total.quantize(Decimal(quantum))


def _mean(series):
    values = series.map(lambda v: None if v is None else float(v)).astype(float)
    if values.empty or values.isna().all():
        return 0.0
    return round(float(values.mean()), 2)


def _counts(series, keys):
    counts = series.value_counts()
    return {key: int(counts.get(key, 0)) for key in keys}


class ReportService:
    @staticmethod
    def dashboard_stats():
        try:
            drivers = _load_frame(DRIVER_COLUMNS)
            vehicles = _load_frame(VEHICLE_COLUMNS, Vehicle.is_active.is_(True))
        except SQLAlchemyError as e:
            logging.error(f"Error loading dashboard data: {e}", exc_info=True)
            raise ServiceError("Could not build dashboard. Please try again later.")

        # Combined status: a non-operational condition wins over assignment
        vehicle_status = vehicles['assignment_status'].where(
            vehicles['condition_status'] == ConditionStatus.OPERATIONAL.value,
            vehicles['condition_status'],
        )

        return {
            'drivers': {
                'total': int(len(drivers)),
                'by_status': _counts(drivers['status'], [s.value for s in DriverStatus]),
                'by_compensation_kind': _counts(drivers['compensation_kind'], [k.value for k in CompensationKind]),
                'online': int(drivers['is_online'].astype(bool).sum()) if not drivers.empty else 0,
            },
            'vehicles': {
                'total': int(len(vehicles)),
                'by_status': _counts(vehicle_status, VEHICLE_STATUSES),
                'by_ownership': _counts(vehicles['ownership'], [o.value for o in VehicleOwnership]),
            },
            'earnings': {
                'total_revenue': _decimal_sum(drivers['total_earnings']),
                'total_rides': int(pd.to_numeric(drivers['total_rides']).sum()) if not drivers.empty else 0,
                'total_km_driven': _decimal_sum(drivers['total_km_driven']),
                'average_rating': _mean(drivers['average_rating']),
            },
            'performance': {
                'average_acceptance_rate': _mean(drivers['acceptance_rate']),
                'average_completion_rate': _mean(drivers['completion_rate']),
                'total_online_hours': round(float(pd.to_numeric(drivers['online_hours']).sum()), 2)
                if not drivers.empty else 0.0,
            },
        }

    @staticmethod
    def top_earners(limit=10):
        """Drivers by total earnings, highest first; equal earnings fall back to driver id."""
        if limit is None or int(limit) < 1:
            return []
        try:
            drivers = _load_frame(DRIVER_COLUMNS)
        except SQLAlchemyError as e:
            logging.error(f"Error loading earnings data: {e}", exc_info=True)
            raise ServiceError("Could not rank drivers. Please try again later.")
        if drivers.empty:
            return []

        drivers['earnings_paise'] = drivers['total_earnings'].map(
            lambda v: int((_to_decimal(v) * 100).to_integral_value()))
        ranked = drivers.sort_values(
            by=['earnings_paise', 'id'], ascending=[False, True], kind='mergesort').head(int(limit))

        return [
            {
                'rank': position,
                'driver_id': int(row['id']),
                'name': row['name'],
                'compensation_kind': row['compensation_kind'],
                'total_earnings': _to_decimal(row['total_earnings']).quantize(Decimal("0.01")),
                'total_rides': int(row['total_rides']),
                'total_km_driven': _to_decimal(row['total_km_driven']).quantize(Decimal("0.01")),
            }
            for position, (_, row) in enumerate(ranked.iterrows(), start=1)
        ]
