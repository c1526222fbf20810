from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from uride.services.errors import InvalidCompensationModel


class CompensationKind(Enum):
    OWNER = "owner"
    FLEET = "fleet"


MIN_COMMISSION_RATE = Decimal("0")
MAX_COMMISSION_RATE = Decimal("0.30")
DEFAULT_COMMISSION_RATE = Decimal("0.05")

MIN_SALARY_PER_KM = Decimal("5")
MAX_SALARY_PER_KM = Decimal("50")
DEFAULT_SALARY_PER_KM = Decimal("12")


@dataclass(frozen=True)
class OwnerCompensation:
    """Vehicle owner: pays the platform a commission on each fare."""
    commission_rate: Decimal
    kind = CompensationKind.OWNER


@dataclass(frozen=True)
class FleetCompensation:
    """Fleet driver: paid per kilometre regardless of the fare collected."""
    salary_per_km: Decimal
    kind = CompensationKind.FLEET


def _to_decimal(value, field):
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidCompensationModel(f"{field} must be a number", field=field)


def build_compensation_model(kind, commission_rate=None, salary_per_km=None,
                             default_commission_rate=DEFAULT_COMMISSION_RATE,
                             default_salary_per_km=DEFAULT_SALARY_PER_KM):
    """
    Build and bound-check a compensation variant.

    An omitted rate falls back to the given default, which is bound-checked
    the same way.

    This is the only place rates are validated; the fare splitter trusts
    whatever this returns.
    """
    try:
        kind = CompensationKind(kind)
    except ValueError:
        raise InvalidCompensationModel(
            f"Unknown compensation kind '{kind}'. Expected 'owner' or 'fleet'",
            field='compensation_kind')

    if kind is CompensationKind.OWNER:
        if salary_per_km is not None:
            raise InvalidCompensationModel(
                "Vehicle owners are paid by commission, not salary_per_km", field='salary_per_km')
        rate = _to_decimal(default_commission_rate if commission_rate is None else commission_rate, 'commission_rate')
        if not MIN_COMMISSION_RATE <= rate <= MAX_COMMISSION_RATE:
            raise InvalidCompensationModel(
                f"commission_rate must be between {MIN_COMMISSION_RATE} and {MAX_COMMISSION_RATE}",
                field='commission_rate')
        return OwnerCompensation(commission_rate=rate)

    if commission_rate is not None:
        raise InvalidCompensationModel(
            "Fleet drivers are paid per km, not by commission_rate", field='commission_rate')
    salary = _to_decimal(default_salary_per_km if salary_per_km is None else salary_per_km, 'salary_per_km')
    if not MIN_SALARY_PER_KM <= salary <= MAX_SALARY_PER_KM:
        raise InvalidCompensationModel(
            f"salary_per_km must be between {MIN_SALARY_PER_KM} and {MAX_SALARY_PER_KM}",
            field='salary_per_km')
    return FleetCompensation(salary_per_km=salary)
