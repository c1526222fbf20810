from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from uride.models.compensation import FleetCompensation, OwnerCompensation

PAISE = Decimal("0.01")


@dataclass(frozen=True)
class FareSplit:
    total_fare: Decimal
    driver_payout: Decimal
    platform_share: Decimal
    compensation_kind: str


def split_fare(total_fare, distance_km, model):
    """
    Split a completed ride's fare between driver and platform.

    owner: the driver keeps fare * (1 - commission_rate).
    fleet: the driver earns distance * salary_per_km whatever the fare was,
    so the platform share goes negative on short expensive-to-drive trips.

    The platform share is always fare - payout, so the two add up to the fare
    exactly. Rates are assumed in range; they are checked at onboarding.
    """
    fare = Decimal(total_fare)
    distance = Decimal(distance_km)

    if isinstance(model, OwnerCompensation):
        payout = (fare * (Decimal("1") - model.commission_rate)).quantize(PAISE, rounding=ROUND_HALF_UP)
    elif isinstance(model, FleetCompensation):
        payout = (distance * model.salary_per_km).quantize(PAISE, rounding=ROUND_HALF_UP)
    else:
        raise TypeError(f"Unsupported compensation model: {model!r}")

    payout = max(payout, Decimal("0.00"))
    return FareSplit(
        total_fare=fare,
        driver_payout=payout,
        platform_share=fare - payout,
        compensation_kind=model.kind.value,
    )
