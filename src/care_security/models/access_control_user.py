"""Access-control user record and its value objects.

One record exists per principal (staff, resident or visitor). The record is
the mutable aggregate of this package: it is updated in place by
:class:`~care_security.services.access_control.AccessControlService` and
persisted by the caller. Time-dependent getters take the current time as an
argument rather than reading the wall clock.
"""

import re
from datetime import datetime, time, timedelta
from enum import Enum
from uuid import UUID, uuid4

from beartype import beartype
from pydantic import AwareDatetime, Field, field_validator, model_validator

from .base import BaseModelConfig, MutableModelConfig
from .levels import AccessLevel, ClearanceLevel, DeviceSecurityLevel, ThreatLevel

_HHMM = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")
_WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class BiometricType(str, Enum):
    """Supported biometric modalities."""

    FINGERPRINT = "fingerprint"
    FACIAL_RECOGNITION = "facial_recognition"
    IRIS_SCAN = "iris_scan"
    PALM_VEIN = "palm_vein"
    VOICE_RECOGNITION = "voice_recognition"
    BEHAVIORAL_BIOMETRICS = "behavioral_biometrics"


class AuthenticationMethod(str, Enum):
    """How an access attempt was authenticated."""

    PASSWORD = "password"
    BIOMETRIC = "biometric"
    SMART_CARD = "smart_card"
    RFID_BADGE = "rfid_badge"
    MOBILE_APP = "mobile_app"
    MULTI_FACTOR = "multi_factor"


class PermissionCategory(str, Enum):
    SYSTEM = "system"
    CLINICAL = "clinical"
    ADMINISTRATIVE = "administrative"
    FACILITY = "facility"
    EMERGENCY = "emergency"


class PermissionRiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    REQUIRES_RE_ENROLLMENT = "requires_re_enrollment"


class CardType(str, Enum):
    RFID = "rfid"
    SMART_CARD = "smart_card"
    PROXIMITY = "proximity"
    MAGNETIC_STRIPE = "magnetic_stripe"


class CardStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    LOST = "lost"
    STOLEN = "stolen"
    EXPIRED = "expired"


@beartype
class Permission(BaseModelConfig):
    """A named grant, optionally scoped to a resource and time-limited."""

    permission_id: UUID = Field(default_factory=uuid4)
    permission_name: str = Field(..., min_length=1, max_length=200)
    permission_category: PermissionCategory = PermissionCategory.SYSTEM
    resource_type: str = Field(..., min_length=1, max_length=100)
    resource_id: str | None = None
    actions: list[str] = Field(default_factory=list)
    granted_date: AwareDatetime
    expiry_date: AwareDatetime | None = None
    granted_by: str = Field(..., min_length=1)
    risk_level: PermissionRiskLevel = PermissionRiskLevel.LOW

    @beartype
    def is_expired(self, now: datetime) -> bool:
        return self.expiry_date is not None and self.expiry_date <= now


@beartype
class AccessCard(BaseModelConfig):
    """Physical access credential."""

    card_id: UUID = Field(default_factory=uuid4)
    card_number: str = Field(..., min_length=1, max_length=64)
    card_type: CardType
    issue_date: AwareDatetime
    expiry_date: AwareDatetime
    status: CardStatus = CardStatus.ACTIVE
    access_zones: list[str] = Field(default_factory=list)
    last_used: AwareDatetime | None = None
    usage_count: int = Field(default=0, ge=0)


@beartype
class BiometricEnrollment(BaseModelConfig):
    """One enrolled biometric template (stored as a hash only)."""

    biometric_id: UUID = Field(default_factory=uuid4)
    biometric_type: BiometricType
    enrollment_date: AwareDatetime
    template_hash: str = Field(..., min_length=1)
    quality_score: int = Field(..., ge=1, le=100)
    verification_accuracy: float = Field(..., ge=0, le=100)
    last_verification: AwareDatetime | None = None
    verification_count: int = Field(default=0, ge=0)
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    security_level: DeviceSecurityLevel = DeviceSecurityLevel.STANDARD
    anti_spoofing_enabled: bool = True
    liveness_detection_enabled: bool = True


@beartype
class TimeSlot(BaseModelConfig):
    start_time: str
    end_time: str
    access_level: AccessLevel = AccessLevel.BASIC
    locations: list[str] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_clock_time(cls, v: str) -> str:
        if not _HHMM.match(v):
            raise ValueError(f"Invalid time {v!r}, expected HH:MM")
        return v

    @beartype
    def covers(self, moment: time) -> bool:
        """Inclusive at both ends, to the minute."""
        current = moment.replace(second=0, microsecond=0, tzinfo=None)
        return (
            time.fromisoformat(self.start_time)
            <= current
            <= time.fromisoformat(self.end_time)
        )


@beartype
class AccessSchedule(BaseModelConfig):
    """Weekly access windows with their own validity period."""

    schedule_id: UUID = Field(default_factory=uuid4)
    schedule_name: str = Field(..., min_length=1, max_length=200)
    valid_days: list[str] = Field(default_factory=list)
    time_slots: list[TimeSlot] = Field(default_factory=list)
    effective_date: AwareDatetime
    expiry_date: AwareDatetime | None = None
    emergency_override: bool = False

    @field_validator("valid_days")
    @classmethod
    def validate_days(cls, v: list[str]) -> list[str]:
        days = [day.lower() for day in v]
        for day in days:
            if day not in _WEEKDAYS:
                raise ValueError(f"Invalid weekday {day!r}")
        return days

    @beartype
    def covers(self, moment: datetime) -> bool:
        """Whether ``moment`` falls in the validity window, a valid day and a slot."""
        if self.expiry_date is not None and self.expiry_date < moment:
            return False
        if self.effective_date > moment:
            return False
        if _WEEKDAYS[moment.weekday()] not in self.valid_days:
            return False
        return any(slot.covers(moment.timetz()) for slot in self.time_slots)


@beartype
class SecurityClearance(BaseModelConfig):
    """Background clearance held by the principal."""

    clearance_level: ClearanceLevel = ClearanceLevel.BASIC
    clearance_date: AwareDatetime
    expiry_date: AwareDatetime
    clearing_authority: str = Field(..., min_length=1)
    background_check_completed: bool = False
    dbs_check_level: ClearanceLevel | None = None
    dbs_check_date: AwareDatetime | None = None
    restrictions_applied: list[str] = Field(default_factory=list)
    monitoring_required: bool = False


@beartype
class DeviceInfo(BaseModelConfig):
    device_id: str = Field(..., min_length=1)
    device_type: str = Field(..., min_length=1)
    location: str | None = None
    ip_address: str | None = None


@beartype
class AccessAttempt(BaseModelConfig):
    """A single recorded access attempt."""

    attempt_id: UUID = Field(default_factory=uuid4)
    attempt_time: AwareDatetime
    access_point: str = Field(..., min_length=1)
    authentication_method: AuthenticationMethod = AuthenticationMethod.PASSWORD
    biometric_type: BiometricType | None = None
    success: bool
    failure_reason: str | None = None
    risk_score: float = Field(default=0, ge=0, le=100)
    device_info: DeviceInfo | None = None


@beartype
class AccessHistory(MutableModelConfig):
    """Bounded, versioned attempt log; the oldest entries are evicted first."""

    capacity: int = Field(default=1000, ge=1)
    attempts: list[AccessAttempt] = Field(default_factory=list)
    version: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def enforce_capacity(self) -> "AccessHistory":
        overflow = len(self.attempts) - self.capacity
        if overflow > 0:
            del self.attempts[:overflow]
        return self

    @beartype
    def append(self, attempt: AccessAttempt) -> list[AccessAttempt]:
        """Add an attempt and return whatever was evicted to make room."""
        self.attempts.append(attempt)
        overflow = max(len(self.attempts) - self.capacity, 0)
        evicted = self.attempts[:overflow]
        del self.attempts[:overflow]
        self.version += 1
        return evicted

    @beartype
    def since(self, cutoff: datetime) -> list[AccessAttempt]:
        """Attempts at or after ``cutoff``, oldest first."""
        return [a for a in self.attempts if a.attempt_time >= cutoff]

    def __len__(self) -> int:
        return len(self.attempts)


@beartype
class ThreatIntelligence(BaseModelConfig):
    """Derived threat assessment; recomputed after every attempt."""

    threat_level: ThreatLevel = ThreatLevel.LOW
    threat_types: list[str] = Field(default_factory=list)
    last_threat_assessment: AwareDatetime | None = None
    security_incidents: int = Field(default=0, ge=0)
    vulnerabilities_identified: int = Field(default=0, ge=0)
    mitigation_measures_implemented: list[str] = Field(default_factory=list)
    security_score: int = Field(default=100, ge=0, le=100)


@beartype
class SecuritySettings(BaseModelConfig):
    mfa_enabled: bool = False
    biometric_required: bool = False
    session_timeout_minutes: int = Field(default=30, ge=1, le=1440)
    concurrent_sessions_allowed: int = Field(default=1, ge=1, le=20)
    ip_restrictions: list[str] = Field(default_factory=list)
    device_restrictions: list[str] = Field(default_factory=list)


@beartype
class AccessControlUserCreate(BaseModelConfig):
    """Payload for onboarding a principal."""

    user_id: str = Field(..., min_length=1, max_length=200)
    employee_id: UUID | None = None
    resident_id: UUID | None = None
    visitor_id: UUID | None = None
    access_level: AccessLevel = AccessLevel.BASIC
    permissions: list[Permission] = Field(default_factory=list)
    access_cards: list[AccessCard] = Field(default_factory=list)
    access_schedule: list[AccessSchedule] = Field(default_factory=list)
    security_clearance: SecurityClearance
    authorized_zones: list[str] = Field(default_factory=list)
    restricted_zones: list[str] = Field(default_factory=list)
    security_settings: SecuritySettings = Field(default_factory=SecuritySettings)


@beartype
class AccessControlUser(MutableModelConfig):
    """Access-control record for one principal."""

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1, max_length=200)
    employee_id: UUID | None = None
    resident_id: UUID | None = None
    visitor_id: UUID | None = None
    access_level: AccessLevel = AccessLevel.BASIC
    permissions: list[Permission] = Field(default_factory=list)
    access_cards: list[AccessCard] = Field(default_factory=list)
    biometric_data: list[BiometricEnrollment] = Field(default_factory=list)
    access_schedule: list[AccessSchedule] = Field(default_factory=list)
    security_clearance: SecurityClearance
    access_history: AccessHistory = Field(default_factory=AccessHistory)
    threat_intelligence: ThreatIntelligence = Field(default_factory=ThreatIntelligence)
    authorized_zones: list[str] = Field(default_factory=list)
    restricted_zones: list[str] = Field(default_factory=list)
    is_active: bool = True
    last_access_time: AwareDatetime | None = None
    password_last_changed: AwareDatetime | None = None
    failed_access_attempts: int = Field(default=0, ge=0)
    account_locked_until: AwareDatetime | None = None
    security_settings: SecuritySettings = Field(default_factory=SecuritySettings)
    created_at: AwareDatetime
    updated_at: AwareDatetime
    version: int = Field(default=1, ge=1)

    @property
    def is_visitor(self) -> bool:
        return self.access_level is AccessLevel.VISITOR

    @beartype
    def has_permission(
        self,
        permission_name: str,
        now: datetime,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> bool:
        """Whether an unexpired grant matches the name and optional scope.

        A grant without a ``resource_id`` covers every resource of its type.
        """
        for permission in self.permissions:
            if permission.permission_name != permission_name:
                continue
            if resource_type and permission.resource_type != resource_type:
                continue
            if (
                resource_id
                and permission.resource_id
                and permission.resource_id != resource_id
            ):
                continue
            if permission.is_expired(now):
                continue
            return True
        return False

    @beartype
    def can_access_zone(self, zone: str) -> bool:
        if zone in self.restricted_zones:
            return False
        return zone in self.authorized_zones or "all_zones" in self.authorized_zones

    @beartype
    def can_access_at_time(self, moment: datetime) -> bool:
        """Inactive users never pass; otherwise any covering schedule grants."""
        if not self.is_active:
            return False
        return any(schedule.covers(moment) for schedule in self.access_schedule)

    @beartype
    def is_account_locked(self, now: datetime) -> bool:
        return self.account_locked_until is not None and now < self.account_locked_until

    @beartype
    def has_biometric_enrolled(self, biometric_type: BiometricType) -> bool:
        return any(
            bio.biometric_type is biometric_type
            and bio.status is EnrollmentStatus.ACTIVE
            for bio in self.biometric_data
        )

    @beartype
    def requires_mfa(self) -> bool:
        return self.security_settings.mfa_enabled or self.access_level in (
            AccessLevel.ADMINISTRATIVE,
            AccessLevel.SYSTEM_ADMIN,
        )

    @beartype
    def is_high_risk_user(self) -> bool:
        return (
            self.threat_intelligence.threat_level.at_least(ThreatLevel.HIGH)
            or self.failed_access_attempts >= 3
        )

    @beartype
    def is_security_clearance_valid(self, now: datetime) -> bool:
        clearance = self.security_clearance
        return now <= clearance.expiry_date and clearance.background_check_completed

    @beartype
    def get_active_permissions(self, now: datetime) -> list[Permission]:
        return [p for p in self.permissions if not p.is_expired(now)]

    @beartype
    def get_expiring_permissions(
        self, now: datetime, within_days: int = 30
    ) -> list[Permission]:
        """Unexpired permissions whose expiry falls within ``within_days``."""
        horizon = now + timedelta(days=within_days)
        return [
            p
            for p in self.permissions
            if p.expiry_date is not None and now < p.expiry_date <= horizon
        ]
