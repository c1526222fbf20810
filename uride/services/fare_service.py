"""
Fare calculation for ride quotes and completed rides.

Indian slab fare: a flat minimum covers the first 2 km, then a per-km rate.
Multipliers compound in a fixed order: base -> vehicle class -> night ->
emergency. The total is rounded half-up to whole rupees; intermediate
amounts keep paise.
"""

import math
from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP, ROUND_CEILING
from datetime import datetime

from uride.models.ride import RidePurpose, VehicleClass
from uride.services.errors import ValidationError
from uride.utils.timezone_utils import to_display_time

MINIMUM_FARE = Decimal("30")
MINIMUM_FARE_KM = Decimal("2")
RATE_PER_KM = Decimal("15")

CLASS_MULTIPLIERS = {
    VehicleClass.ECONOMY: Decimal("1.0"),
    VehicleClass.PREMIUM: Decimal("1.5"),
    VehicleClass.SUV: Decimal("2.0"),
    VehicleClass.LUXURY: Decimal("3.3"),
}

NIGHT_MULTIPLIER = Decimal("1.25")
NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 5
EMERGENCY_MULTIPLIER = Decimal("1.5")

# Straight-line distance understates road distance; no live routing call
ROAD_DISTANCE_FACTOR = Decimal("1.3")
EARTH_RADIUS_KM = 6371.0
# 25 km/h average city speed
MINUTES_PER_KM = Decimal("2.4")

FARE_QUANTUM = Decimal("1")
PAISE = Decimal("0.01")


@dataclass(frozen=True)
class FareBreakdown:
    distance_km: Decimal
    vehicle_class: str
    purpose: str
    base_fare: Decimal
    class_multiplier: Decimal
    class_fare: Decimal
    is_night: bool
    night_surcharge: Decimal
    emergency_surcharge: Decimal
    total_fare: Decimal
    estimated_minutes: int

    def to_dict(self):
        return asdict(self)


def _parse_enum(enum_cls, value, field):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}'. Expected one of: {allowed}", field=field)


def _validate_coordinate(lat, lng, field):
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} coordinates must be numbers", field=field)
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError(f"{field} coordinates are out of range", field=field)
    return lat, lng


def haversine_km(pickup, destination):
    """Great-circle distance in km between two (lat, lng) pairs."""
    lat1, lng1 = _validate_coordinate(*pickup, field='pickup')
    lat2, lng2 = _validate_coordinate(*destination, field='destination')
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def estimate_road_distance_km(pickup, destination):
    straight = Decimal(str(haversine_km(pickup, destination)))
    return (straight * ROAD_DISTANCE_FACTOR).quantize(PAISE, rounding=ROUND_HALF_UP)


def is_night_hour(hour):
    return hour >= NIGHT_START_HOUR or hour < NIGHT_END_HOUR


def base_fare_for(distance_km):
    if distance_km <= MINIMUM_FARE_KM:
        return MINIMUM_FARE
    return MINIMUM_FARE + (distance_km - MINIMUM_FARE_KM) * RATE_PER_KM


def round_fare(amount):
    return amount.quantize(FARE_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_fare(vehicle_class, purpose, at: datetime, distance_km=None, pickup=None, destination=None):
    """
    Quote a fare.

    Either `distance_km` or both `pickup` and `destination` (lat, lng) must
    be given. `at` decides the night surcharge via its hour in the display
    timezone; naive datetimes are read as display-local time.
    """
    vehicle_class = _parse_enum(VehicleClass, vehicle_class, 'vehicle_class')
    purpose = _parse_enum(RidePurpose, purpose, 'purpose')
    if at is None:
        raise ValidationError("A quote time is required", field='at')

    if distance_km is None:
        if pickup is None or destination is None:
            raise ValidationError("Provide distance_km or both pickup and destination", field='distance_km')
        distance = estimate_road_distance_km(pickup, destination)
    else:
        try:
            distance = Decimal(str(distance_km)).quantize(PAISE, rounding=ROUND_HALF_UP)
        except ArithmeticError:
            raise ValidationError("distance_km must be a number", field='distance_km')
        if not distance.is_finite() or distance < 0:
            raise ValidationError("distance_km must be a non-negative number", field='distance_km')

    base = base_fare_for(distance)
    multiplier = CLASS_MULTIPLIERS[vehicle_class]
    class_fare = base * multiplier

    night = is_night_hour(to_display_time(at).hour)
    after_night = class_fare * NIGHT_MULTIPLIER if night else class_fare
    night_surcharge = after_night - class_fare

    emergency = purpose is RidePurpose.EMERGENCY
    after_emergency = after_night * EMERGENCY_MULTIPLIER if emergency else after_night
    emergency_surcharge = after_emergency - after_night

    minutes = int((distance * MINUTES_PER_KM).to_integral_value(rounding=ROUND_CEILING))

    return FareBreakdown(
        distance_km=distance,
        vehicle_class=vehicle_class.value,
        purpose=purpose.value,
        base_fare=base.quantize(PAISE, rounding=ROUND_HALF_UP),
        class_multiplier=multiplier,
        class_fare=class_fare.quantize(PAISE, rounding=ROUND_HALF_UP),
        is_night=night,
        night_surcharge=night_surcharge.quantize(PAISE, rounding=ROUND_HALF_UP),
        emergency_surcharge=emergency_surcharge.quantize(PAISE, rounding=ROUND_HALF_UP),
        total_fare=round_fare(after_emergency),
        estimated_minutes=minutes,
    )
