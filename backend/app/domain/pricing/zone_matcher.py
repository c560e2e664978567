"""
Zone Matcher.

Resolves which zones contain a coordinate and how their pricing effects
combine when zones overlap:
- restricted zones are reported first; they never affect the price and the
  caller decides whether to refuse dispatch
- multipliers of the remaining zones multiply together
- airport fees of the remaining zones add up
"""

from decimal import Decimal
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from backend.app.core.exceptions import InvalidGeometry
from backend.app.domain.pricing.entities import GeoPoint, ZoneSpec
from backend.app.domain.pricing.geo_polygon import contains
from backend.app.models.pricing_enums import ZoneType

ZONE_PRECEDENCE = {
    ZoneType.RESTRICTED: 0,
    ZoneType.PREMIUM_AREA: 1,
    ZoneType.SERVICE_AREA: 2,
}


def _precedence(zone: ZoneSpec) -> tuple:
    return (ZONE_PRECEDENCE[zone.zone_type], zone.id)


class ZoneMatcher:

    @staticmethod
    def match(zones: Iterable[ZoneSpec], point: GeoPoint, timestamp: Optional[datetime] = None) -> List[ZoneSpec]:
        """
        Find all active zones containing `point`.

        Zones have no schedule; `timestamp` is accepted and does not change
        the result.

        Returns:
            Matched zones, restricted first, then premium, then service areas
            (ties broken by zone id).

        Raises:
            InvalidGeometry: If an active zone has a degenerate polygon.
        """
        matched = []
        for zone in zones:
            if not zone.is_active:
                continue
            try:
                inside = contains(zone.coordinates, point)
            except InvalidGeometry as exc:
                raise InvalidGeometry(f"Zone '{zone.name}': {exc.message}", zone_id=zone.id)
            if inside:
                matched.append(zone)

        return sorted(matched, key=_precedence)

    @staticmethod
    def merge(*matches: Sequence[ZoneSpec]) -> List[ZoneSpec]:
        """Union several match results; a zone matched twice counts once."""
        by_id = {}
        for zones in matches:
            for zone in zones:
                by_id.setdefault(zone.id, zone)
        return sorted(by_id.values(), key=_precedence)

    @staticmethod
    def priced_zones(matched: Iterable[ZoneSpec]) -> List[ZoneSpec]:
        return [zone for zone in matched if not zone.is_restricted]

    @staticmethod
    def combined_multiplier(matched: Iterable[ZoneSpec]) -> Decimal:
        multiplier = Decimal("1")
        for zone in ZoneMatcher.priced_zones(matched):
            multiplier *= zone.pricing_multiplier
        return multiplier

    @staticmethod
    def combined_fees(matched: Iterable[ZoneSpec]) -> Decimal:
        return sum((zone.airport_fee for zone in ZoneMatcher.priced_zones(matched)), Decimal("0"))
