"""Security policy business logic service."""

import logging
import time
from uuid import UUID, uuid4

from beartype import beartype
from pydantic import Field

from ..core.clock import Clock
from ..core.repository import Repository
from ..core.result_types import Err, Ok, Result
from ..models.access_context import AccessContext, AccessDecision
from ..models.base import BaseModelConfig
from ..models.security_policy import (
    EnforcementLevel,
    PolicyType,
    SecurityPolicy,
    SecurityPolicyCreate,
    SecurityPolicyUpdate,
)
from .audit import AuditEvent, AuditEventType, AuditSink
from .policy_engine import PolicyEngine, update_metrics

logger = logging.getLogger(__name__)

POLICY_NOT_FOUND = "Security policy not found"


@beartype
class PolicyEvaluation(BaseModelConfig):
    """One policy's contribution to a combined decision."""

    policy_id: UUID
    policy_name: str
    enforcement_level: EnforcementLevel
    decision: AccessDecision


@beartype
class CombinedDecision(BaseModelConfig):
    """Decision across every effective policy."""

    allowed: bool
    actions: list[str] = Field(default_factory=list)
    reason: str | None = None
    evaluations: list[PolicyEvaluation] = Field(default_factory=list)


class SecurityPolicyService:
    """Service for security policy CRUD and evaluation."""

    def __init__(
        self,
        repository: Repository[SecurityPolicy],
        engine: PolicyEngine,
        audit: AuditSink,
        clock: Clock | None = None,
    ) -> None:
        """Initialize policy service."""
        self._repository = repository
        self._engine = engine
        self._audit = audit
        self._clock = clock or engine.clock

    @beartype
    async def create(
        self, policy_data: SecurityPolicyCreate
    ) -> Result[SecurityPolicy, str]:
        """Create a new policy."""
        now = self._clock.now()
        policy = SecurityPolicy(
            id=uuid4(),
            created_at=now,
            updated_at=now,
            **policy_data.model_dump(),
        )
        await self._repository.add(policy)
        await self._audit.record(
            AuditEvent(
                timestamp=now,
                event_type=AuditEventType.POLICY_CHANGE,
                action="policy_created",
                resource=str(policy.id),
                user_id=policy.created_by,
            )
        )
        logger.info("Created security policy %s (%s)", policy.id, policy.name)
        return Ok(policy)

    @beartype
    async def get(self, policy_id: UUID) -> Result[SecurityPolicy, str]:
        """Get policy by ID."""
        policy = await self._repository.get(policy_id)
        if policy is None:
            return Err(POLICY_NOT_FOUND)
        return Ok(policy)

    @beartype
    async def list(
        self,
        policy_type: PolicyType | None = None,
        active_only: bool = False,
    ) -> Result[list[SecurityPolicy], str]:
        """List policies, optionally by type and active flag, by priority."""

        def matches(policy: SecurityPolicy) -> bool:
            if policy_type is not None and policy.policy_type is not policy_type:
                return False
            if active_only and not policy.is_active:
                return False
            return True

        policies = await self._repository.list(matches)
        policies.sort(key=lambda p: (p.priority, p.created_at))
        return Ok(policies)

    @beartype
    async def update(
        self, policy_id: UUID, policy_update: SecurityPolicyUpdate
    ) -> Result[SecurityPolicy, str]:
        """Apply a partial update and bump the version."""
        existing = await self._repository.get(policy_id)
        if existing is None:
            return Err(POLICY_NOT_FOUND)

        changes = policy_update.model_dump(exclude_unset=True)
        merged = existing.model_dump()
        merged.update(changes)
        merged["version"] = existing.version + 1
        merged["updated_at"] = self._clock.now()
        if changes.get("requires_approval") or "conditions" in changes or "actions" in changes:
            # Material changes void a previous approval.
            merged["approved_by"] = None
            merged["approved_at"] = None

        try:
            policy = SecurityPolicy.model_validate(merged)
        except ValueError as e:
            return Err(f"Validation failed: {e}")

        await self._repository.update(policy)
        await self._audit.record(
            AuditEvent(
                timestamp=policy.updated_at,
                event_type=AuditEventType.POLICY_CHANGE,
                action="policy_updated",
                resource=str(policy.id),
                event_data={"fields": sorted(changes)},
            )
        )
        return Ok(policy)

    @beartype
    async def delete(self, policy_id: UUID) -> Result[bool, str]:
        """Delete a policy."""
        if not await self._repository.delete(policy_id):
            return Err(POLICY_NOT_FOUND)
        await self._audit.record(
            AuditEvent(
                timestamp=self._clock.now(),
                event_type=AuditEventType.POLICY_CHANGE,
                action="policy_deleted",
                resource=str(policy_id),
            )
        )
        return Ok(True)

    @beartype
    async def approve(
        self, policy_id: UUID, approved_by: str
    ) -> Result[SecurityPolicy, str]:
        """Record approval of an approval-gated policy."""
        existing = await self._repository.get(policy_id)
        if existing is None:
            return Err(POLICY_NOT_FOUND)
        if not existing.requires_approval:
            return Err("Policy does not require approval")
        if existing.is_approved():
            return Err(f"Policy already approved by {existing.approved_by}")

        now = self._clock.now()
        policy = existing.model_copy(
            update={"approved_by": approved_by, "approved_at": now, "updated_at": now}
        )
        await self._repository.update(policy)
        await self._audit.record(
            AuditEvent(
                timestamp=now,
                event_type=AuditEventType.POLICY_CHANGE,
                action="policy_approved",
                resource=str(policy.id),
                user_id=approved_by,
            )
        )
        return Ok(policy)

    async def _evaluate_and_record(
        self, policy: SecurityPolicy, context: AccessContext
    ) -> AccessDecision:
        started = time.perf_counter()
        decision = self._engine.evaluate_access(policy, context)
        elapsed_ms = (time.perf_counter() - started) * 1000

        now = self._clock.now()
        updated = policy.model_copy(
            update={"metrics": update_metrics(policy.metrics, decision, elapsed_ms, now)}
        )
        await self._repository.update(updated)

        await self._audit.record(
            AuditEvent(
                timestamp=now,
                event_type=(
                    AuditEventType.ACCESS_GRANTED
                    if decision.allowed
                    else AuditEventType.ACCESS_DENIED
                ),
                action="evaluate_access",
                resource=context.resource,
                user_id=context.user_id,
                correlation_id=context.correlation_id,
                decision="allow" if decision.allowed else "deny",
                reason=decision.reason,
                event_data={"policy_id": str(policy.id), "actions": decision.actions},
            )
        )
        logger.debug(
            "Policy %s evaluated for user %s: allowed=%s reason=%s",
            policy.id,
            context.user_id,
            decision.allowed,
            decision.reason,
        )
        return decision

    @beartype
    async def evaluate(
        self, policy_id: UUID, context: AccessContext
    ) -> Result[AccessDecision, str]:
        """Evaluate one policy, then update its metrics and audit the decision."""
        policy = await self._repository.get(policy_id)
        if policy is None:
            return Err(POLICY_NOT_FOUND)
        return Ok(await self._evaluate_and_record(policy, context))

    @beartype
    async def evaluate_applicable(
        self, context: AccessContext, policy_type: PolicyType | None = None
    ) -> Result[CombinedDecision, str]:
        """Evaluate every effective policy and combine the decisions.

        Advisory denials are logged but never block. Any mandatory or critical
        denial blocks. Otherwise access is allowed when at least one policy
        allowed it.
        """
        now = self._clock.now()
        listed = await self.list(policy_type=policy_type, active_only=True)
        policies = [p for p in listed.unwrap() if p.is_effective(now)]
        if not policies:
            return Ok(CombinedDecision(allowed=False, reason="No applicable policy"))

        evaluations: list[PolicyEvaluation] = []
        actions: list[str] = []
        blocking: PolicyEvaluation | None = None
        any_allowed = False

        for policy in policies:
            decision = await self._evaluate_and_record(policy, context)
            evaluation = PolicyEvaluation(
                policy_id=policy.id,
                policy_name=policy.name,
                enforcement_level=policy.enforcement_level,
                decision=decision,
            )
            evaluations.append(evaluation)
            for action in decision.actions:
                if action not in actions:
                    actions.append(action)

            if decision.allowed:
                any_allowed = True
            elif policy.enforcement_level is EnforcementLevel.ADVISORY:
                logger.info(
                    "Advisory policy %s would deny user %s: %s",
                    policy.name,
                    context.user_id,
                    decision.reason,
                )
            elif blocking is None:
                blocking = evaluation
                logger.warning(
                    "%s policy %s denied user %s: %s",
                    policy.enforcement_level.value.capitalize(),
                    policy.name,
                    context.user_id,
                    decision.reason,
                )

        if blocking is not None:
            return Ok(
                CombinedDecision(
                    allowed=False,
                    actions=actions,
                    reason=f"{blocking.policy_name}: {blocking.decision.reason}",
                    evaluations=evaluations,
                )
            )
        return Ok(
            CombinedDecision(
                allowed=any_allowed,
                actions=actions,
                reason="Allowed by policy" if any_allowed else "No policy granted access",
                evaluations=evaluations,
            )
        )
