"""Condition evaluators for security policies.

Each evaluator receives one condition category and only the context fields
that category inspects, and answers ``True`` when the request satisfies it.
Evaluators never raise on bad input: malformed addresses, unknown time zones
and missing values simply fail (or, for block lists and maximum thresholds,
are skipped).
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from ipaddress import ip_address, ip_network
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from attrs import frozen
from beartype import beartype

from ..models.access_context import AccessContext
from ..models.levels import ClearanceLevel, DeviceSecurityLevel
from ..models.security_policy import (
    DeviceRestrictions,
    LocationRestrictions,
    PolicyConditions,
    ResourceRestrictions,
    RiskThresholds,
    RoleRestrictions,
    TimeRestrictions,
)

logger = logging.getLogger(__name__)


@frozen
class ConditionOutcome:
    """Aggregate result of all condition categories."""

    passed: bool
    failed_category: str | None = None

    @property
    def reason(self) -> str | None:
        if self.failed_category is None:
            return None
        return f"{self.failed_category} not satisfied"


@beartype
def _address_matches(address: str, entries: Iterable[str]) -> bool:
    """Exact or CIDR match; malformed addresses and entries never match."""
    try:
        candidate = ip_address(address)
    except ValueError:
        return False
    for entry in entries:
        try:
            if "/" in entry:
                if candidate in ip_network(entry, strict=False):
                    return True
            elif candidate == ip_address(entry):
                return True
        except ValueError:
            logger.debug("Ignoring malformed address entry %r", entry)
    return False


@beartype
def check_roles(
    restrictions: RoleRestrictions,
    user_roles: list[str],
    user_groups: list[str],
) -> bool:
    """At least one shared role and one shared group, for non-empty lists."""
    if restrictions.allowed_roles and not set(user_roles) & set(
        restrictions.allowed_roles
    ):
        return False
    if restrictions.allowed_groups and not set(user_groups) & set(
        restrictions.allowed_groups
    ):
        return False
    return True


@beartype
def _local_time(now: datetime, zone_name: str) -> datetime | None:
    if zone_name.upper() == "UTC":
        return now.astimezone(timezone.utc)
    try:
        return now.astimezone(ZoneInfo(zone_name))
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r in time restrictions", zone_name)
        return None


@beartype
def check_time(restrictions: TimeRestrictions, now: datetime) -> bool:
    """Local time inside the inclusive window on a permitted day (0 = Sunday)."""
    local = _local_time(now, restrictions.timezone)
    if local is None:
        return False
    current = local.time().replace(second=0, microsecond=0)
    if not restrictions.start <= current <= restrictions.end:
        return False
    day_of_week = (local.weekday() + 1) % 7
    return day_of_week in restrictions.days_of_week


@beartype
def check_location(
    restrictions: LocationRestrictions,
    ip: str | None,
    country: str | None,
) -> bool:
    """Block lists first, then allow lists; a missing value fails an allow list."""
    if restrictions.blocked_ips and ip and _address_matches(ip, restrictions.blocked_ips):
        return False
    if restrictions.allowed_ips is not None:
        if not ip or not _address_matches(ip, restrictions.allowed_ips):
            return False

    if (
        restrictions.blocked_countries
        and country
        and country in restrictions.blocked_countries
    ):
        return False
    if restrictions.allowed_countries is not None:
        if not country or country not in restrictions.allowed_countries:
            return False
    return True


@beartype
def check_device(
    restrictions: DeviceRestrictions,
    device_type: str | None,
    security_level: DeviceSecurityLevel | None,
    biometric_verified: bool,
    mfa_verified: bool,
) -> bool:
    if restrictions.allowed_device_types is not None:
        if device_type not in restrictions.allowed_device_types:
            return False
    required = restrictions.required_security_level
    if required is not None:
        if security_level is None or not security_level.at_least(required):
            return False
    if restrictions.biometric_required and not biometric_verified:
        return False
    if restrictions.mfa_required and not mfa_verified:
        return False
    return True


@beartype
def check_resource(
    restrictions: ResourceRestrictions,
    resource: str | None,
    resource_type: str | None,
) -> bool:
    if (
        restrictions.blocked_resources
        and resource
        and resource in restrictions.blocked_resources
    ):
        return False
    if restrictions.allowed_resources is not None:
        if resource not in restrictions.allowed_resources:
            return False
    if restrictions.resource_types is not None:
        if resource_type not in restrictions.resource_types:
            return False
    return True


@beartype
def check_risk(
    thresholds: RiskThresholds,
    risk_score: float | None,
    clearance: ClearanceLevel | None,
    suspicious_activity_score: float | None,
) -> bool:
    """Scores may not exceed their maximum; clearance must meet the minimum."""
    if (
        thresholds.max_risk_score is not None
        and risk_score is not None
        and risk_score > thresholds.max_risk_score
    ):
        return False
    required = thresholds.required_security_clearance
    if required is not None:
        if clearance is None or not clearance.at_least(required):
            return False
    if (
        thresholds.max_suspicious_activity_score is not None
        and suspicious_activity_score is not None
        and suspicious_activity_score > thresholds.max_suspicious_activity_score
    ):
        return False
    return True


@beartype
def evaluate_conditions(
    conditions: PolicyConditions, context: AccessContext, now: datetime
) -> ConditionOutcome:
    """Check every present category; the first failing one denies."""
    checks = (
        (
            "Role restrictions",
            conditions.role_restrictions,
            lambda c: check_roles(c, context.user_roles, context.user_groups),
        ),
        (
            "Time restrictions",
            conditions.time_restrictions,
            lambda c: check_time(c, now),
        ),
        (
            "Location restrictions",
            conditions.location_restrictions,
            lambda c: check_location(c, context.ip_address, context.country),
        ),
        (
            "Device restrictions",
            conditions.device_restrictions,
            lambda c: check_device(
                c,
                context.device_type,
                context.device_security_level,
                context.biometric_verified,
                context.mfa_verified,
            ),
        ),
        (
            "Resource restrictions",
            conditions.resource_restrictions,
            lambda c: check_resource(c, context.resource, context.resource_type),
        ),
        (
            "Risk thresholds",
            conditions.risk_thresholds,
            lambda c: check_risk(
                c,
                context.risk_score,
                context.security_clearance,
                context.suspicious_activity_score,
            ),
        ),
    )
    for category, condition, check in checks:
        if condition is not None and not check(condition):
            return ConditionOutcome(passed=False, failed_category=category)
    return ConditionOutcome(passed=True)
