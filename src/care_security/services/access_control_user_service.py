"""Access-control user business logic service.

Loads a user record, applies an :class:`AccessControlService` operation to
it and persists the mutated record.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar
from uuid import UUID

from beartype import beartype

from ..core.clock import Clock
from ..core.repository import Repository
from ..core.result_types import Err, Ok, Result
from ..models.access_control_user import (
    AccessAttempt,
    AccessControlUser,
    AccessControlUserCreate,
    AccessHistory,
    BiometricEnrollment,
    BiometricType,
    Permission,
)
from .access_control import AccessControlService, SecurityReport
from .audit import AuditEvent, AuditEventType, AuditSink

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "Access control user not found"

T = TypeVar("T")


class AccessControlUserService:
    """Service wrapping access-control operations with persistence."""

    def __init__(
        self,
        repository: Repository[AccessControlUser],
        access_control: AccessControlService,
        audit: AuditSink,
        clock: Clock,
        history_capacity: int = 1000,
    ) -> None:
        """Initialize the user service."""
        self._repository = repository
        self._access_control = access_control
        self._audit = audit
        self._clock = clock
        self._history_capacity = history_capacity

    async def _find_by_user_id(self, user_id: str) -> AccessControlUser | None:
        matches = await self._repository.list(lambda u: u.user_id == user_id)
        return matches[0] if matches else None

    async def _apply(
        self, record_id: UUID, operation: Callable[[AccessControlUser], T]
    ) -> Result[tuple[AccessControlUser, T], str]:
        user = await self._repository.get(record_id)
        if user is None:
            return Err(USER_NOT_FOUND)
        outcome = operation(user)
        await self._repository.update(user)
        return Ok((user, outcome))

    @beartype
    async def create(
        self, user_data: AccessControlUserCreate
    ) -> Result[AccessControlUser, str]:
        """Onboard a principal."""
        if await self._find_by_user_id(user_data.user_id) is not None:
            return Err(f"Access control user {user_data.user_id} already exists")

        now = self._clock.now()
        user = AccessControlUser(
            **user_data.model_dump(),
            access_history=AccessHistory(capacity=self._history_capacity),
            created_at=now,
            updated_at=now,
        )
        user.threat_intelligence = user.threat_intelligence.model_copy(
            update={
                "last_threat_assessment": now,
                "security_score": self._access_control.calculate_security_score(user),
            }
        )
        await self._repository.add(user)
        logger.info("Onboarded access control user %s", user.user_id)
        return Ok(user)

    @beartype
    async def get(self, record_id: UUID) -> Result[AccessControlUser, str]:
        user = await self._repository.get(record_id)
        if user is None:
            return Err(USER_NOT_FOUND)
        return Ok(user)

    @beartype
    async def record_attempt(
        self, record_id: UUID, attempt: AccessAttempt
    ) -> Result[AccessControlUser, str]:
        """Fold an access attempt into the user's history and threat state."""
        user = await self._repository.get(record_id)
        if user is None:
            return Err(USER_NOT_FOUND)

        was_locked = user.is_account_locked(self._clock.now())
        self._access_control.add_access_attempt(user, attempt)
        await self._repository.update(user)

        if not was_locked and self._access_control.is_account_locked(user):
            await self._audit.record(
                AuditEvent(
                    timestamp=self._clock.now(),
                    event_type=AuditEventType.ACCOUNT_LOCKED,
                    action="account_locked",
                    resource=attempt.access_point,
                    user_id=user.user_id,
                    reason=f"{user.failed_access_attempts} failed access attempts",
                )
            )
        return Ok(user)

    @beartype
    async def unlock(self, record_id: UUID) -> Result[AccessControlUser, str]:
        result = await self._apply(record_id, self._access_control.unlock_account)
        if result.is_err():
            return Err(result.unwrap_err())
        user, _ = result.unwrap()
        await self._audit.record(
            AuditEvent(
                timestamp=self._clock.now(),
                event_type=AuditEventType.ACCOUNT_UNLOCKED,
                action="account_unlocked",
                user_id=user.user_id,
            )
        )
        return Ok(user)

    @beartype
    async def security_report(self, record_id: UUID) -> Result[SecurityReport, str]:
        user = await self._repository.get(record_id)
        if user is None:
            return Err(USER_NOT_FOUND)
        return Ok(self._access_control.generate_security_report(user))

    @beartype
    async def can_access_at(
        self, record_id: UUID, moment: datetime | None = None
    ) -> Result[bool, str]:
        if moment is not None and moment.tzinfo is None:
            return Err("Invalid access time: a UTC offset is required")
        user = await self._repository.get(record_id)
        if user is None:
            return Err(USER_NOT_FOUND)
        return Ok(self._access_control.can_access_at_time(user, moment))

    @beartype
    async def enroll_biometric(
        self, record_id: UUID, enrollment: BiometricEnrollment
    ) -> Result[BiometricEnrollment, str]:
        result = await self._apply(
            record_id, lambda u: self._access_control.enroll_biometric(u, enrollment)
        )
        if result.is_err():
            return Err(result.unwrap_err())
        return Ok(result.unwrap()[1])

    @beartype
    async def verify_biometric(
        self, record_id: UUID, biometric_type: BiometricType, template_hash: str
    ) -> Result[bool, str]:
        result = await self._apply(
            record_id,
            lambda u: self._access_control.verify_biometric(
                u, biometric_type, template_hash
            ),
        )
        if result.is_err():
            return Err(result.unwrap_err())
        return Ok(result.unwrap()[1])

    @beartype
    async def add_permission(
        self, record_id: UUID, permission: Permission
    ) -> Result[AccessControlUser, str]:
        result = await self._apply(
            record_id, lambda u: self._access_control.add_permission(u, permission)
        )
        if result.is_err():
            return Err(result.unwrap_err())
        return Ok(result.unwrap()[0])

    @beartype
    async def remove_permission(
        self,
        record_id: UUID,
        permission_name: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> Result[int, str]:
        result = await self._apply(
            record_id,
            lambda u: self._access_control.remove_permission(
                u, permission_name, resource_type, resource_id
            ),
        )
        if result.is_err():
            return Err(result.unwrap_err())
        return Ok(result.unwrap()[1])
