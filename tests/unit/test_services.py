"""Unit tests for the async service layer.

Services return ``Result`` values: business failures come back as ``Err``
strings, never as exceptions.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from care_security.core.clock import FixedClock
from care_security.core.result_types import Err, Ok
from care_security.models.access_context import AccessContext
from care_security.models.access_control_user import (
    AccessAttempt,
    AccessControlUserCreate,
    BiometricEnrollment,
    BiometricType,
    Permission,
    SecurityClearance,
)
from care_security.models.security_incident import (
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    SecurityIncidentCreate,
    SecurityIncidentUpdate,
)
from care_security.models.security_policy import (
    EnforcementLevel,
    PolicyActions,
    PolicyConditions,
    PolicyType,
    RoleRestrictions,
    SecurityPolicyCreate,
    SecurityPolicyUpdate,
)
from care_security.services.access_control_user_service import (
    USER_NOT_FOUND,
    AccessControlUserService,
)
from care_security.services.audit import AuditEventType, LoggingAuditSink
from care_security.services.security_incident_service import (
    INCIDENT_NOT_FOUND,
    SecurityIncidentService,
)
from care_security.services.security_policy_service import (
    POLICY_NOT_FOUND,
    SecurityPolicyService,
)
from tests.fixtures.test_data import NOW


def _policy_create(**overrides: object) -> SecurityPolicyCreate:
    data: dict[str, object] = {
        "name": "Ward A clinical access",
        "policy_type": PolicyType.ACCESS_CONTROL,
        "effective_date": NOW - timedelta(days=1),
        "actions": PolicyActions(allow=True),
        "created_by": "security-admin",
    }
    data.update(overrides)
    return SecurityPolicyCreate(**data)


def _nurse_only(**overrides: object) -> SecurityPolicyCreate:
    return _policy_create(
        conditions=PolicyConditions(
            role_restrictions=RoleRestrictions(allowed_roles=["nurse"])
        ),
        **overrides,
    )


class TestSecurityPolicyService:
    @pytest.mark.asyncio
    async def test_create_and_get(
        self, policy_service: SecurityPolicyService, audit: LoggingAuditSink
    ) -> None:
        created = (await policy_service.create(_policy_create())).unwrap()

        fetched = await policy_service.get(created.id)

        assert fetched == Ok(created)
        assert created.version == 1
        assert created.created_at == NOW
        assert audit.events[-1].action == "policy_created"

    @pytest.mark.asyncio
    async def test_get_unknown_policy(
        self, policy_service: SecurityPolicyService
    ) -> None:
        result = await policy_service.get(uuid4())

        assert result == Err(POLICY_NOT_FOUND)

    @pytest.mark.asyncio
    async def test_list_orders_by_priority_and_filters(
        self, policy_service: SecurityPolicyService
    ) -> None:
        low = (await policy_service.create(_policy_create(name="Low", priority=500))).unwrap()
        high = (await policy_service.create(_policy_create(name="High", priority=10))).unwrap()
        await policy_service.create(
            _policy_create(
                name="Network", policy_type=PolicyType.NETWORK_SECURITY, is_active=False
            )
        )

        everything = (await policy_service.list()).unwrap()
        access = (
            await policy_service.list(policy_type=PolicyType.ACCESS_CONTROL)
        ).unwrap()
        active = (await policy_service.list(active_only=True)).unwrap()

        assert len(everything) == 3
        assert [p.id for p in access] == [high.id, low.id]
        assert all(p.is_active for p in active)
        assert len(active) == 2

    @pytest.mark.asyncio
    async def test_update_bumps_version_and_voids_approval(
        self, policy_service: SecurityPolicyService
    ) -> None:
        policy = (await policy_service.create(_policy_create(requires_approval=True))).unwrap()
        await policy_service.approve(policy.id, "data-protection-officer")

        result = await policy_service.update(
            policy.id, SecurityPolicyUpdate(actions=PolicyActions(deny=True))
        )

        updated = result.unwrap()
        assert updated.version == 2
        assert updated.actions.deny
        assert updated.approved_by is None
        assert updated.is_pending()

    @pytest.mark.asyncio
    async def test_rename_keeps_approval(
        self, policy_service: SecurityPolicyService
    ) -> None:
        policy = (await policy_service.create(_policy_create(requires_approval=True))).unwrap()
        await policy_service.approve(policy.id, "data-protection-officer")

        updated = (
            await policy_service.update(policy.id, SecurityPolicyUpdate(name="Renamed"))
        ).unwrap()

        assert updated.approved_by == "data-protection-officer"

    @pytest.mark.asyncio
    async def test_invalid_update_is_rejected(
        self, policy_service: SecurityPolicyService
    ) -> None:
        policy = (await policy_service.create(_policy_create())).unwrap()

        result = await policy_service.update(
            policy.id, SecurityPolicyUpdate(expiry_date=NOW - timedelta(days=5))
        )

        assert result.is_err()
        assert result.unwrap_err().startswith("Validation failed")

    @pytest.mark.asyncio
    async def test_approval_rules(self, policy_service: SecurityPolicyService) -> None:
        plain = (await policy_service.create(_policy_create())).unwrap()
        gated = (await policy_service.create(_policy_create(requires_approval=True))).unwrap()

        assert (await policy_service.approve(plain.id, "dpo")) == Err(
            "Policy does not require approval"
        )
        approved = (await policy_service.approve(gated.id, "dpo")).unwrap()
        assert approved.approved_at == NOW
        assert (await policy_service.approve(gated.id, "dpo")).is_err()

    @pytest.mark.asyncio
    async def test_delete(self, policy_service: SecurityPolicyService) -> None:
        policy = (await policy_service.create(_policy_create())).unwrap()

        assert await policy_service.delete(policy.id) == Ok(True)
        assert await policy_service.delete(policy.id) == Err(POLICY_NOT_FOUND)

    @pytest.mark.asyncio
    async def test_evaluate_records_metrics_and_audit(
        self, policy_service: SecurityPolicyService, audit: LoggingAuditSink
    ) -> None:
        policy = (await policy_service.create(_nurse_only())).unwrap()

        granted = await policy_service.evaluate(
            policy.id, AccessContext(user_id="n1", user_roles=["nurse"], correlation_id="req-1")
        )
        refused = await policy_service.evaluate(
            policy.id, AccessContext(user_id="k1", user_roles=["kitchen"])
        )

        assert granted.unwrap().allowed
        assert not refused.unwrap().allowed
        metrics = (await policy_service.get(policy.id)).unwrap().metrics
        assert metrics.total_evaluations == 2
        assert metrics.effectiveness_percentage == pytest.approx(50.0)
        assert metrics.last_evaluated_at == NOW
        event_types = [e.event_type for e in audit.events[-2:]]
        assert event_types == [AuditEventType.ACCESS_GRANTED, AuditEventType.ACCESS_DENIED]
        assert audit.events[-2].correlation_id == "req-1"

    @pytest.mark.asyncio
    async def test_evaluate_unknown_policy(
        self, policy_service: SecurityPolicyService
    ) -> None:
        assert await policy_service.evaluate(uuid4(), AccessContext()) == Err(
            POLICY_NOT_FOUND
        )


class TestCombinedEvaluation:
    @pytest.mark.asyncio
    async def test_no_effective_policy(
        self, policy_service: SecurityPolicyService
    ) -> None:
        await policy_service.create(_policy_create(is_active=False))

        decision = (await policy_service.evaluate_applicable(AccessContext())).unwrap()

        assert not decision.allowed
        assert decision.reason == "No applicable policy"
        assert decision.evaluations == []

    @pytest.mark.asyncio
    async def test_advisory_denial_does_not_block(
        self, policy_service: SecurityPolicyService
    ) -> None:
        await policy_service.create(_policy_create(name="Baseline"))
        await policy_service.create(
            _nurse_only(name="Nurses advised", enforcement_level=EnforcementLevel.ADVISORY)
        )

        decision = (
            await policy_service.evaluate_applicable(AccessContext(user_roles=["carer"]))
        ).unwrap()

        assert decision.allowed
        assert len(decision.evaluations) == 2
        assert "deny" in decision.actions

    @pytest.mark.asyncio
    async def test_mandatory_denial_blocks(
        self, policy_service: SecurityPolicyService
    ) -> None:
        await policy_service.create(_policy_create(name="Baseline", priority=1))
        await policy_service.create(_nurse_only(name="Nurses only", priority=2))

        decision = (
            await policy_service.evaluate_applicable(AccessContext(user_roles=["carer"]))
        ).unwrap()

        assert not decision.allowed
        assert decision.reason == "Nurses only: Role restrictions not satisfied"

    @pytest.mark.asyncio
    async def test_filter_by_policy_type(
        self, policy_service: SecurityPolicyService
    ) -> None:
        await policy_service.create(_nurse_only(name="Nurses only"))
        await policy_service.create(
            _policy_create(name="Device baseline", policy_type=PolicyType.DEVICE_SECURITY)
        )

        decision = (
            await policy_service.evaluate_applicable(
                AccessContext(user_roles=["carer"]),
                policy_type=PolicyType.DEVICE_SECURITY,
            )
        ).unwrap()

        assert decision.allowed
        assert [e.policy_name for e in decision.evaluations] == ["Device baseline"]


class TestSecurityIncidentService:
    @staticmethod
    def _incident(**overrides: object) -> SecurityIncidentCreate:
        data: dict[str, object] = {
            "title": "Lost access card",
            "description": "Agency carer reported a lost RFID card",
            "incident_type": IncidentType.POLICY_VIOLATION,
            "severity": IncidentSeverity.MEDIUM,
            "reported_by": "night-manager",
            "occurred_at": NOW - timedelta(hours=3),
        }
        data.update(overrides)
        return SecurityIncidentCreate(**data)

    @pytest.mark.asyncio
    async def test_create_list_and_filter(
        self, incident_service: SecurityIncidentService, audit: LoggingAuditSink
    ) -> None:
        older = (await incident_service.create(self._incident())).unwrap()
        newer = (
            await incident_service.create(
                self._incident(
                    severity=IncidentSeverity.CRITICAL,
                    occurred_at=NOW - timedelta(minutes=5),
                )
            )
        ).unwrap()

        listed = (await incident_service.list()).unwrap()
        critical = (await incident_service.list(severity=IncidentSeverity.CRITICAL)).unwrap()

        assert [i.id for i in listed] == [newer.id, older.id]
        assert [i.id for i in critical] == [newer.id]
        assert audit.events[-1].event_type is AuditEventType.SECURITY_INCIDENT

    @pytest.mark.asyncio
    async def test_resolve_sets_timestamp_once(
        self, incident_service: SecurityIncidentService
    ) -> None:
        incident = (await incident_service.create(self._incident())).unwrap()

        resolved = (
            await incident_service.resolve(incident.id, "Card deactivated and reissued")
        ).unwrap()

        assert resolved.status is IncidentStatus.RESOLVED
        assert resolved.resolved_at == NOW
        assert not resolved.is_open
        assert (await incident_service.resolve(incident.id, "again")) == Err(
            "Security incident is already resolved"
        )

    @pytest.mark.asyncio
    async def test_reopening_clears_resolution_time(
        self, incident_service: SecurityIncidentService
    ) -> None:
        incident = (await incident_service.create(self._incident())).unwrap()
        await incident_service.resolve(incident.id, "Closed out")

        reopened = (
            await incident_service.update(
                incident.id, SecurityIncidentUpdate(status=IncidentStatus.INVESTIGATING)
            )
        ).unwrap()

        assert reopened.resolved_at is None
        assert reopened.is_open

    @pytest.mark.asyncio
    async def test_invalid_create_and_unknown_ids(
        self, incident_service: SecurityIncidentService
    ) -> None:
        invalid = await incident_service.create(
            self._incident(status=IncidentStatus.CLOSED)
        )

        assert invalid.unwrap_err().startswith("Validation failed")
        assert await incident_service.get(uuid4()) == Err(INCIDENT_NOT_FOUND)
        assert await incident_service.delete(uuid4()) == Err(INCIDENT_NOT_FOUND)


class TestAccessControlUserService:
    @staticmethod
    def _user(**overrides: object) -> AccessControlUserCreate:
        data: dict[str, object] = {
            "user_id": "carer-019",
            "security_clearance": SecurityClearance(
                clearance_date=NOW - timedelta(days=10),
                expiry_date=NOW + timedelta(days=355),
                clearing_authority="DBS",
                background_check_completed=True,
            ),
        }
        data.update(overrides)
        return AccessControlUserCreate(**data)

    @pytest.mark.asyncio
    async def test_create_scores_new_user(
        self, user_service: AccessControlUserService
    ) -> None:
        user = (await user_service.create(self._user())).unwrap()

        assert user.threat_intelligence.security_score == 75
        assert user.threat_intelligence.last_threat_assessment == NOW
        assert user.access_history.capacity == 1000
        assert (await user_service.get(user.id)).unwrap() == user

    @pytest.mark.asyncio
    async def test_duplicate_user_id_is_rejected(
        self, user_service: AccessControlUserService
    ) -> None:
        await user_service.create(self._user())

        result = await user_service.create(self._user())

        assert result == Err("Access control user carer-019 already exists")

    @pytest.mark.asyncio
    async def test_lockout_is_persisted_and_audited(
        self,
        user_service: AccessControlUserService,
        audit: LoggingAuditSink,
        clock: FixedClock,
    ) -> None:
        user = (await user_service.create(self._user())).unwrap()
        attempt = AccessAttempt(
            attempt_time=NOW, access_point="staff_door", success=False
        )

        for _ in range(5):
            await user_service.record_attempt(user.id, attempt)

        stored = (await user_service.get(user.id)).unwrap()
        assert stored.failed_access_attempts == 5
        assert stored.is_account_locked(clock.now())
        locked_events = [
            e for e in audit.events if e.event_type is AuditEventType.ACCOUNT_LOCKED
        ]
        assert len(locked_events) == 1
        assert locked_events[0].user_id == "carer-019"

        unlocked = (await user_service.unlock(user.id)).unwrap()
        assert not unlocked.is_account_locked(clock.now())
        assert audit.events[-1].event_type is AuditEventType.ACCOUNT_UNLOCKED

    @pytest.mark.asyncio
    async def test_unknown_user(self, user_service: AccessControlUserService) -> None:
        missing = uuid4()
        attempt = AccessAttempt(attempt_time=NOW, access_point="staff_door", success=True)

        assert await user_service.get(missing) == Err(USER_NOT_FOUND)
        assert await user_service.record_attempt(missing, attempt) == Err(USER_NOT_FOUND)
        assert await user_service.unlock(missing) == Err(USER_NOT_FOUND)
        assert await user_service.security_report(missing) == Err(USER_NOT_FOUND)

    @pytest.mark.asyncio
    async def test_biometrics_and_permissions_are_persisted(
        self, user_service: AccessControlUserService
    ) -> None:
        user = (await user_service.create(self._user())).unwrap()

        await user_service.enroll_biometric(
            user.id,
            BiometricEnrollment(
                biometric_type=BiometricType.PALM_VEIN,
                enrollment_date=NOW,
                template_hash="f00d",
                quality_score=91,
                verification_accuracy=98.5,
            ),
        )
        verified = await user_service.verify_biometric(
            user.id, BiometricType.PALM_VEIN, "f00d"
        )
        await user_service.add_permission(
            user.id,
            Permission(
                permission_name="open_medication_room",
                resource_type="door",
                granted_date=NOW,
                granted_by="manager-01",
            ),
        )
        removed = await user_service.remove_permission(user.id, "unknown_permission")

        assert verified == Ok(True)
        assert removed == Ok(0)
        stored = (await user_service.get(user.id)).unwrap()
        assert stored.biometric_data[0].verification_count == 1
        assert stored.has_permission("open_medication_room", NOW)

    @pytest.mark.asyncio
    async def test_can_access_without_schedule(
        self, user_service: AccessControlUserService
    ) -> None:
        user = (await user_service.create(self._user())).unwrap()

        assert await user_service.can_access_at(user.id) == Ok(False)
