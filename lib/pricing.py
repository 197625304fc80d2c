# =============================================================================
# lib/pricing.py - Trip Pricing Calculator
# =============================================================================
# Computes the quoted price of a trip from its distance, timing and options.
#
# Rate structure:
#   - $50 per leg (a round trip is two legs)
#   - $3/mile inside Franklin County, $4/mile outside (doubled for round trips)
#   - $50 per extra county once a trip crosses 2+ counties outside Franklin
#   - $40 weekend / after-hours premium (before 08:00 or from 18:00, Sat/Sun)
#   - $40 emergency fee
#   - $25 wheelchair rental (only when we provide the wheelchair)
#   - 20% veteran discount off the subtotal
#
# Distance is an input here; the booking UI resolves it from the map provider.
#
# Usage:
#   from lib.pricing import calculate_trip_price
#   quote = calculate_trip_price(distance_miles=12.4, is_round_trip=True)
#   print(quote.total)
# =============================================================================

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from pydantic import BaseModel, Field

from lib.utils import parse_timestamp


# =============================================================================
# Rate Constants
# =============================================================================

PER_LEG = Decimal("50")
FRANKLIN_COUNTY_PER_MILE = Decimal("3.00")
OUTSIDE_FRANKLIN_PER_MILE = Decimal("4.00")
WEEKEND_AFTER_HOURS_PREMIUM = Decimal("40")
EMERGENCY_FEE = Decimal("40")
WHEELCHAIR_RENTAL = Decimal("25")
COUNTY_SURCHARGE = Decimal("50")
VETERAN_DISCOUNT_RATE = Decimal("0.20")

BUSINESS_HOURS_START = 8   # 08:00
BUSINESS_HOURS_END = 18    # 18:00

# Wheelchair type that means we bring the chair
WHEELCHAIR_PROVIDED = "provided"

CENT = Decimal("0.01")


def _to_cents(value: Decimal) -> float:
    return float(value.quantize(CENT, rounding=ROUND_HALF_UP))


# =============================================================================
# Models
# =============================================================================

class PriceBreakdown(BaseModel):
    """Line items of a trip quote. All amounts in USD, rounded to cents."""

    base_price: float = 0
    round_trip_price: float = 0
    distance_price: float = 0
    county_price: float = 0
    weekend_after_hours_surcharge: float = 0
    emergency_fee: float = 0
    wheelchair_price: float = 0
    veteran_discount: float = 0
    total: float = 0

    def line_items(self) -> dict[str, float]:
        """Non-zero charges with display labels (discount shown negative)."""
        labels = [
            ("Base rate", self.base_price),
            ("Round trip", self.round_trip_price),
            ("Distance", self.distance_price),
            ("County surcharge", self.county_price),
            ("Weekend/After hours", self.weekend_after_hours_surcharge),
            ("Emergency fee", self.emergency_fee),
            ("Wheelchair rental", self.wheelchair_price),
        ]
        items = {label: amount for label, amount in labels if amount > 0}
        if self.veteran_discount > 0:
            items["Veteran discount"] = -self.veteran_discount
        return items


class CountyInfo(BaseModel):
    """Where the trip runs relative to Franklin County."""

    is_in_franklin_county: bool = True
    counties_out: int = Field(default=0, ge=0)


# =============================================================================
# Time Rules
# =============================================================================

def is_after_hours(pickup: datetime) -> bool:
    """True before 08:00 or from 18:00 (pickup's own clock)."""
    return pickup.hour < BUSINESS_HOURS_START or pickup.hour >= BUSINESS_HOURS_END


def is_weekend(pickup: datetime) -> bool:
    """True on Saturday or Sunday."""
    return pickup.weekday() >= 5


# =============================================================================
# Calculator
# =============================================================================

def calculate_trip_price(
    distance_miles: float = 0,
    is_round_trip: bool = False,
    pickup_time: datetime | str | None = None,
    wheelchair_type: str | None = None,
    is_emergency: bool = False,
    is_veteran: bool = False,
    county_info: CountyInfo | None = None,
) -> PriceBreakdown:
    """
    Calculate the price of a trip.

    Args:
        distance_miles: One-way distance in miles
        is_round_trip: Whether the trip has a return leg
        pickup_time: Pickup time (datetime or ISO string); None skips the
            weekend/after-hours premium
        wheelchair_type: Wheelchair option; only "provided" is charged
        is_emergency: Emergency trip flag
        is_veteran: Apply the veteran discount
        county_info: County placement; defaults to inside Franklin County

    Returns:
        PriceBreakdown with every line item and the total
    """
    county = county_info or CountyInfo()

    base = PER_LEG
    round_trip = PER_LEG if is_round_trip else Decimal("0")

    distance = Decimal("0")
    miles = Decimal(str(distance_miles or 0))
    if miles > 0:
        effective = miles * 2 if is_round_trip else miles
        rate = FRANKLIN_COUNTY_PER_MILE if county.is_in_franklin_county else OUTSIDE_FRANKLIN_PER_MILE
        distance = effective * rate

    county_price = Decimal("0")
    if county.counties_out >= 2:
        county_price = (county.counties_out - 1) * COUNTY_SURCHARGE

    premium = Decimal("0")
    pickup = parse_timestamp(pickup_time) if isinstance(pickup_time, str) else pickup_time
    if pickup is not None and (is_after_hours(pickup) or is_weekend(pickup)):
        premium = WEEKEND_AFTER_HOURS_PREMIUM

    emergency = EMERGENCY_FEE if is_emergency else Decimal("0")
    wheelchair = WHEELCHAIR_RENTAL if wheelchair_type == WHEELCHAIR_PROVIDED else Decimal("0")

    subtotal = base + round_trip + distance + county_price + premium + emergency + wheelchair
    discount = subtotal * VETERAN_DISCOUNT_RATE if is_veteran else Decimal("0")

    return PriceBreakdown(
        base_price=_to_cents(base),
        round_trip_price=_to_cents(round_trip),
        distance_price=_to_cents(distance),
        county_price=_to_cents(county_price),
        weekend_after_hours_surcharge=_to_cents(premium),
        emergency_fee=_to_cents(emergency),
        wheelchair_price=_to_cents(wheelchair),
        veteran_discount=_to_cents(discount),
        total=_to_cents(subtotal - discount),
    )


def format_currency(amount: float) -> str:
    """Format a USD amount, e.g. 1234.5 -> "$1,234.50" (negatives as "-$5.00")."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"
