"""Security policy access-evaluation engine.

Evaluation order for one policy:

1. effectiveness window (inactive, not yet effective or expired policies deny)
2. optional approval gate
3. exceptions, in list order, first match allows
4. condition categories, any failure denies
5. action flags compose the decision; ``deny`` outranks ``allow``

Evaluation is synchronous and never raises. Metrics are updated separately
through :func:`update_metrics` by whoever persists the policy.
"""

import logging
from datetime import datetime

from beartype import beartype

from ..core.clock import Clock, SystemClock
from ..models.access_context import AccessContext, AccessDecision
from ..models.security_policy import (
    ExceptionType,
    PolicyAction,
    PolicyException,
    PolicyMetrics,
    SecurityPolicy,
)
from .conditions import evaluate_conditions

logger = logging.getLogger(__name__)

NOT_EFFECTIVE_REASON = "Policy is not effective"
PENDING_APPROVAL_REASON = "Policy is pending approval"
EXCEPTION_GRANTED_REASON = "Exception granted"


@beartype
def exception_matches(
    entry: PolicyException, context: AccessContext, now: datetime
) -> bool:
    """Whether a single exception entry applies to the request."""
    if entry.exception_type is ExceptionType.USER:
        return context.user_id is not None and context.user_id == entry.user_id
    if entry.exception_type is ExceptionType.GROUP:
        return entry.user_group in context.user_groups
    if entry.exception_type is ExceptionType.RESOURCE:
        return context.resource is not None and context.resource == entry.resource
    if entry.exception_type is ExceptionType.TIME_RANGE:
        if entry.starts_at is None or entry.ends_at is None:
            return False
        return entry.starts_at <= now <= entry.ends_at
    return False


@beartype
def update_metrics(
    metrics: PolicyMetrics,
    decision: AccessDecision,
    evaluation_time_ms: float,
    now: datetime,
) -> PolicyMetrics:
    """Fold one evaluation into the running counters."""
    total = metrics.total_evaluations + 1
    allowed = metrics.allowed_count + (1 if decision.allowed else 0)
    denied = metrics.denied_count + (0 if decision.allowed else 1)
    average = (
        metrics.average_evaluation_time_ms * metrics.total_evaluations
        + max(evaluation_time_ms, 0.0)
    ) / total
    return metrics.model_copy(
        update={
            "total_evaluations": total,
            "allowed_count": allowed,
            "denied_count": denied,
            "mfa_required_count": metrics.mfa_required_count
            + (1 if PolicyAction.REQUIRE_MFA.value in decision.actions else 0),
            "alert_count": metrics.alert_count
            + (1 if PolicyAction.SEND_ALERT.value in decision.actions else 0),
            "average_evaluation_time_ms": average,
            "effectiveness_percentage": allowed / total * 100,
            "last_evaluated_at": now,
        }
    )


class PolicyEngine:
    """Evaluates security policies against access contexts."""

    def __init__(
        self, clock: Clock | None = None, *, enforce_approval: bool = False
    ) -> None:
        """Initialize the engine.

        Args:
            clock: Current-time provider; wall-clock UTC when omitted
            enforce_approval: Deny pending approval-gated policies
        """
        self._clock = clock or SystemClock()
        self._enforce_approval = enforce_approval

    @property
    def clock(self) -> Clock:
        return self._clock

    @beartype
    def evaluate_access(
        self, policy: SecurityPolicy, context: AccessContext
    ) -> AccessDecision:
        """Produce an allow/deny decision plus side-effect actions."""
        now = self._clock.now()

        if not policy.is_effective(now):
            return AccessDecision.deny(NOT_EFFECTIVE_REASON)

        if self._enforce_approval and policy.is_pending():
            return AccessDecision.deny(PENDING_APPROVAL_REASON)

        for entry in policy.exceptions:
            if exception_matches(entry, context, now):
                logger.debug(
                    "Policy %s exception %s matched for user %s",
                    policy.id,
                    entry.exception_type.value,
                    context.user_id,
                )
                return AccessDecision.allow(EXCEPTION_GRANTED_REASON)

        outcome = evaluate_conditions(policy.conditions, context, now)
        if not outcome.passed:
            return AccessDecision(
                allowed=False, actions=[PolicyAction.DENY.value], reason=outcome.reason
            )

        actions = policy.actions.enabled()
        allowed = policy.actions.allow and not policy.actions.deny
        if allowed:
            reason = "Policy conditions satisfied"
        elif policy.actions.deny:
            reason = "Denied by policy action"
        else:
            reason = "Policy grants no access"
        return AccessDecision(allowed=allowed, actions=actions, reason=reason)
