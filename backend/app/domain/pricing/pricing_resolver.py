"""
Pricing Rule Resolver.

Responsible for turning the active rule set and zones into the inputs of the
fare formula for one trip context.

Base rule priority:
1. Vehicle-type specific rule over a generic one
2. Most recent effective_from
3. Highest id
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from backend.app.core.exceptions import NoBaseRuleConfigured
from backend.app.domain.pricing.clock import as_utc, localize
from backend.app.domain.pricing.entities import (
    BaseRule, GeoPoint, ResolvedRuleSet, TimeBasedRule, ZoneBasedRule, ZoneSpec
)
from backend.app.domain.pricing.time_window_matcher import TimeWindowMatcher
from backend.app.domain.pricing.zone_matcher import ZoneMatcher

_EPOCH = datetime(1970, 1, 1)


def _base_rule_priority(rule: BaseRule) -> tuple:
    effective_from = as_utc(rule.effective_from or _EPOCH)
    return (rule.vehicle_type is not None, effective_from, rule.id)


class PricingResolver:

    @staticmethod
    def select_base_rule(rules: Iterable[BaseRule], vehicle_type: Optional[str] = None) -> BaseRule:
        """
        Pick the base tariff among candidate base rules.

        Raises:
            NoBaseRuleConfigured: If there is no candidate. Fares without a
                base tariff are meaningless, so this is never defaulted.
        """
        candidates = list(rules)
        if not candidates:
            raise NoBaseRuleConfigured(vehicle_type)
        return max(candidates, key=_base_rule_priority)

    @staticmethod
    def resolve(
        pricing_rules: Sequence,
        zones: Sequence[ZoneSpec],
        point: GeoPoint,
        timestamp: datetime,
        dropoff: Optional[GeoPoint] = None,
        vehicle_type: Optional[str] = None,
        tz_name: Optional[str] = None,
    ) -> ResolvedRuleSet:
        """
        Resolve the applicable rules for a trip.

        Args:
            pricing_rules: All known rules (inactive ones are ignored)
            zones: All known zones (inactive ones are ignored)
            point: Pickup coordinate
            timestamp: Trip time
            dropoff: Optional dropoff coordinate; zones there apply too
            vehicle_type: Requested vehicle category
            tz_name: Override of the service timezone

        Returns:
            ResolvedRuleSet with base rule, surge/zone multipliers and zone fees

        Raises:
            NoBaseRuleConfigured: If no active base rule applies.
            InvalidGeometry: If an active zone polygon is degenerate.
        """
        timestamp = localize(timestamp, tz_name)

        base_rules: List[BaseRule] = []
        time_rules: List[TimeBasedRule] = []
        zone_rules: List[ZoneBasedRule] = []

        for rule in pricing_rules:
            if not (rule.is_active and rule.is_effective(timestamp) and rule.applies_to(vehicle_type)):
                continue
            if isinstance(rule, BaseRule):
                base_rules.append(rule)
            elif isinstance(rule, TimeBasedRule):
                time_rules.append(rule)
            elif isinstance(rule, ZoneBasedRule):
                zone_rules.append(rule)
            else:
                raise TypeError(f"Unhandled pricing rule type: {rule!r}")

        base = PricingResolver.select_base_rule(base_rules, vehicle_type)

        # Time surcharges
        matched_time_rules = TimeWindowMatcher.match(time_rules, timestamp, tz_name)
        surge_multiplier = base.surge_multiplier * TimeWindowMatcher.combined_multiplier(matched_time_rules)

        # Zones at pickup and dropoff
        matched_zones = ZoneMatcher.match(zones, point, timestamp)
        if dropoff is not None:
            matched_zones = ZoneMatcher.merge(matched_zones, ZoneMatcher.match(zones, dropoff, timestamp))

        priced_zone_ids = {zone.id for zone in ZoneMatcher.priced_zones(matched_zones)}
        matched_zone_rules = sorted(
            (rule for rule in zone_rules if rule.zone_id in priced_zone_ids),
            key=lambda rule: rule.id
        )

        zone_multiplier = ZoneMatcher.combined_multiplier(matched_zones)
        for rule in matched_zone_rules:
            zone_multiplier *= rule.surge_multiplier

        return ResolvedRuleSet(
            base=base,
            surge_multiplier=surge_multiplier,
            zone_multiplier=zone_multiplier,
            zone_fees=ZoneMatcher.combined_fees(matched_zones),
            time_rule_ids=tuple(rule.id for rule in matched_time_rules),
            zone_rule_ids=tuple(rule.id for rule in matched_zone_rules),
            matched_zones=tuple(matched_zones),
        )
