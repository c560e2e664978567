"""
Pricing enumerations.

Values match what the admin layer stores for rules, zones and promo codes.
"""

import enum


class PricingRuleType(str, enum.Enum):
    """Pricing rule type enumeration."""
    BASE = "base"  # The always-applicable tariff
    TIME_BASED = "time_based"  # Surcharge inside a daily time window
    ZONE_BASED = "zone_based"  # Surcharge while inside a given zone


class ZoneType(str, enum.Enum):
    """Zone type enumeration."""
    SERVICE_AREA = "service_area"
    PREMIUM_AREA = "premium_area"
    RESTRICTED = "restricted"  # Dispatch may be refused


class DiscountType(str, enum.Enum):
    """Promo discount type enumeration."""
    PERCENTAGE = "percentage"
    FLAT = "flat"


class VehicleType(str, enum.Enum):
    """Vehicle categories a rule or promo can be limited to."""
    ECONOMY = "economy"
    COMFORT = "comfort"
    PREMIUM = "premium"
    SUV = "suv"
    XL = "xl"
