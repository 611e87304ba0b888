"""Access-attempt processing, threat assessment and security scoring.

:class:`AccessControlService` mutates an
:class:`~care_security.models.access_control_user.AccessControlUser` in
place; the caller persists the record afterwards.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from beartype import beartype
from pydantic import Field

from ..core.clock import Clock, SystemClock
from ..core.config import Settings, get_settings
from ..models.access_control_user import (
    AccessAttempt,
    AccessControlUser,
    BiometricEnrollment,
    BiometricType,
    EnrollmentStatus,
    Permission,
)
from ..models.base import BaseModelConfig
from ..models.levels import AccessLevel, ThreatLevel

logger = logging.getLogger(__name__)

# Hours within this distance of a habitual hour are not unusual.
_HOUR_TOLERANCE = 2
_TOP_PATTERN_ENTRIES = 3
_REVIEW_INACTIVITY = timedelta(days=182)


def _utc_hour(moment: datetime) -> int:
    return moment.astimezone(timezone.utc).hour


@beartype
class AccessPattern(BaseModelConfig):
    """Habitual access behaviour over the trailing pattern window."""

    most_active_hours: list[int] = Field(default_factory=list)
    most_active_locations: list[str] = Field(default_factory=list)
    average_session_duration_minutes: int = 120
    access_frequency_per_day: float = Field(default=0.0, ge=0)


@beartype
class SecurityReport(BaseModelConfig):
    """Point-in-time security summary of one principal."""

    user_id: str
    access_level: AccessLevel
    security_score: int = Field(..., ge=0, le=100)
    threat_level: ThreatLevel
    last_access: datetime | None = None
    access_pattern: AccessPattern
    security_clearance_valid: bool
    mfa_enabled: bool
    biometrics_enrolled: int = Field(..., ge=0)
    recent_failed_attempts: int = Field(..., ge=0)
    account_status: str = Field(..., pattern=r"^(locked|active|inactive)$")
    needs_security_review: bool
    recommendations: list[str] = Field(default_factory=list)


class AccessControlService:
    """Folds access attempts into a user record and derives its risk."""

    def __init__(
        self, clock: Clock | None = None, settings: Settings | None = None
    ) -> None:
        """Initialize with a time source and tunables."""
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()

    def _touch(self, user: AccessControlUser) -> None:
        user.version += 1
        user.updated_at = self._clock.now()

    # Attempts and lockout

    @beartype
    def add_access_attempt(
        self, user: AccessControlUser, attempt: AccessAttempt
    ) -> None:
        """Record an attempt, update failure counters and reassess threat."""
        evicted = user.access_history.append(attempt)
        if evicted:
            logger.debug(
                "Evicted %d access attempts for user %s", len(evicted), user.user_id
            )

        if attempt.success:
            user.last_access_time = attempt.attempt_time
            user.failed_access_attempts = 0
        else:
            user.failed_access_attempts += 1
            if user.failed_access_attempts >= self._settings.lockout_threshold:
                self.lock_account(user, self._settings.lockout_minutes)

        self.update_threat_intelligence(user, attempt)
        self._touch(user)

    @beartype
    def lock_account(self, user: AccessControlUser, duration_minutes: int) -> None:
        user.account_locked_until = self._clock.now() + timedelta(
            minutes=duration_minutes
        )
        logger.warning(
            "Locked account %s for %d minutes after %d failed attempts",
            user.user_id,
            duration_minutes,
            user.failed_access_attempts,
        )
        self._touch(user)

    @beartype
    def unlock_account(self, user: AccessControlUser) -> None:
        user.account_locked_until = None
        user.failed_access_attempts = 0
        self._touch(user)

    @beartype
    def is_account_locked(self, user: AccessControlUser) -> bool:
        return user.is_account_locked(self._clock.now())

    @beartype
    def can_access_at_time(
        self, user: AccessControlUser, moment: datetime | None = None
    ) -> bool:
        return user.can_access_at_time(moment or self._clock.now())

    # Threat intelligence

    @beartype
    def get_access_pattern(self, user: AccessControlUser) -> AccessPattern:
        """Top hours and access points among recent successful attempts."""
        window = self._settings.access_pattern_window_days
        cutoff = self._clock.now() - timedelta(days=window)
        recent = [a for a in user.access_history.since(cutoff) if a.success]

        hour_counts = Counter(_utc_hour(a.attempt_time) for a in recent)
        location_counts = Counter(a.access_point for a in recent)
        return AccessPattern(
            most_active_hours=[
                hour for hour, _ in hour_counts.most_common(_TOP_PATTERN_ENTRIES)
            ],
            most_active_locations=[
                loc for loc, _ in location_counts.most_common(_TOP_PATTERN_ENTRIES)
            ],
            access_frequency_per_day=len(recent) / window,
        )

    @beartype
    def is_unusual_access(self, user: AccessControlUser, attempt: AccessAttempt) -> bool:
        """Outside habitual hours and outside habitual access points."""
        pattern = self.get_access_pattern(user)
        hour = _utc_hour(attempt.attempt_time)
        unusual_time = not any(
            abs(active_hour - hour) <= _HOUR_TOLERANCE
            for active_hour in pattern.most_active_hours
        )
        unusual_location = attempt.access_point not in pattern.most_active_locations
        return unusual_time and unusual_location

    @beartype
    def update_threat_intelligence(
        self, user: AccessControlUser, attempt: AccessAttempt
    ) -> None:
        now = self._clock.now()
        cutoff = now - timedelta(hours=self._settings.threat_window_hours)
        recent_failures = sum(
            1 for a in user.access_history.since(cutoff) if not a.success
        )

        if recent_failures >= 10:
            level = ThreatLevel.CRITICAL
        elif recent_failures >= 5:
            level = ThreatLevel.HIGH
        elif recent_failures >= 2:
            level = ThreatLevel.MEDIUM
        else:
            level = ThreatLevel.LOW

        if self.is_unusual_access(user, attempt):
            level = level.escalate()

        # The score depends on the new level, so store the level first.
        user.threat_intelligence = user.threat_intelligence.model_copy(
            update={"threat_level": level, "last_threat_assessment": now}
        )
        user.threat_intelligence = user.threat_intelligence.model_copy(
            update={"security_score": self.calculate_security_score(user)}
        )

    @beartype
    def calculate_security_score(self, user: AccessControlUser) -> int:
        """Score in [0, 100] from failures, clearance, MFA, biometrics and threat."""
        now = self._clock.now()
        settings = user.security_settings
        score = 100

        score -= user.failed_access_attempts * 5
        if not user.is_security_clearance_valid(now):
            score -= 20
        if not settings.mfa_enabled and not user.is_visitor:
            score -= 15
        if not user.biometric_data and not user.is_visitor:
            score -= 10
        if user.threat_intelligence.threat_level is ThreatLevel.HIGH:
            score -= 25
        if user.threat_intelligence.threat_level is ThreatLevel.CRITICAL:
            score -= 50

        if settings.biometric_required:
            score += 10
        if len(user.biometric_data) >= 2:
            score += 5
        if settings.ip_restrictions:
            score += 5

        return max(0, min(100, score))

    # Biometrics and permissions

    @beartype
    def enroll_biometric(
        self, user: AccessControlUser, enrollment: BiometricEnrollment
    ) -> BiometricEnrollment:
        """Enroll a template, replacing any enrollment of the same type."""
        enrolled = enrollment.model_copy(
            update={
                "biometric_id": uuid4(),
                "enrollment_date": self._clock.now(),
                "verification_count": 0,
            }
        )
        user.biometric_data = [
            bio
            for bio in user.biometric_data
            if bio.biometric_type is not enrolled.biometric_type
        ] + [enrolled]
        self._touch(user)
        return enrolled

    @beartype
    def verify_biometric(
        self,
        user: AccessControlUser,
        biometric_type: BiometricType,
        template_hash: str,
    ) -> bool:
        """Compare a template hash against the active enrollment of that type."""
        for index, bio in enumerate(user.biometric_data):
            if bio.biometric_type is not biometric_type:
                continue
            if bio.status is not EnrollmentStatus.ACTIVE:
                continue
            if bio.template_hash != template_hash:
                return False
            updated = list(user.biometric_data)
            updated[index] = bio.model_copy(
                update={
                    "last_verification": self._clock.now(),
                    "verification_count": bio.verification_count + 1,
                }
            )
            user.biometric_data = updated
            self._touch(user)
            return True
        return False

    @beartype
    def add_permission(self, user: AccessControlUser, permission: Permission) -> None:
        """Grant a permission, replacing one with the same name and scope."""
        user.permissions = [
            p
            for p in user.permissions
            if not (
                p.permission_name == permission.permission_name
                and p.resource_type == permission.resource_type
                and p.resource_id == permission.resource_id
            )
        ] + [permission]
        self._touch(user)

    @beartype
    def remove_permission(
        self,
        user: AccessControlUser,
        permission_name: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> int:
        """Revoke matching permissions and return how many were removed."""
        kept = [
            p
            for p in user.permissions
            if not (
                p.permission_name == permission_name
                and (not resource_type or p.resource_type == resource_type)
                and (not resource_id or p.resource_id == resource_id)
            )
        ]
        removed = len(user.permissions) - len(kept)
        if removed:
            user.permissions = kept
            self._touch(user)
        return removed

    # Review and reporting

    @beartype
    def needs_security_review(self, user: AccessControlUser) -> bool:
        now = self._clock.now()
        stale = (
            user.last_access_time is not None
            and user.last_access_time < now - _REVIEW_INACTIVITY
        )
        return (
            user.is_high_risk_user()
            or stale
            or not user.is_security_clearance_valid(now)
        )

    @beartype
    def generate_security_recommendations(self, user: AccessControlUser) -> list[str]:
        now = self._clock.now()
        recommendations = []

        if not user.security_settings.mfa_enabled and not user.is_visitor:
            recommendations.append("Enable multi-factor authentication")
        if not user.biometric_data and not user.is_visitor:
            recommendations.append("Enroll biometric authentication")
        if not user.is_security_clearance_valid(now):
            recommendations.append("Renew security clearance")
        if user.threat_intelligence.threat_level is not ThreatLevel.LOW:
            recommendations.append("Review and address security concerns")
        if user.failed_access_attempts > 0:
            recommendations.append("Investigate recent failed access attempts")

        expiring = user.get_expiring_permissions(
            now, self._settings.expiring_permission_days
        )
        if expiring:
            recommendations.append(f"Renew {len(expiring)} expiring permissions")
        return recommendations

    @beartype
    def generate_security_report(self, user: AccessControlUser) -> SecurityReport:
        now = self._clock.now()
        if not user.is_active:
            status = "inactive"
        elif user.is_account_locked(now):
            status = "locked"
        else:
            status = "active"

        return SecurityReport(
            user_id=user.user_id,
            access_level=user.access_level,
            security_score=self.calculate_security_score(user),
            threat_level=user.threat_intelligence.threat_level,
            last_access=user.last_access_time,
            access_pattern=self.get_access_pattern(user),
            security_clearance_valid=user.is_security_clearance_valid(now),
            mfa_enabled=user.security_settings.mfa_enabled,
            biometrics_enrolled=len(user.biometric_data),
            recent_failed_attempts=user.failed_access_attempts,
            account_status=status,
            needs_security_review=self.needs_security_review(user),
            recommendations=self.generate_security_recommendations(user),
        )
