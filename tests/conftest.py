"""Test configuration and shared fixtures.

Every fixture shares one :class:`FixedClock` pinned to Monday 2026-10-12
10:00 UTC so evaluation, lockout and scoring are deterministic.
"""

from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from care_security.core.clock import FixedClock
from care_security.core.config import Settings, clear_settings_cache
from care_security.core.repository import InMemoryRepository
from care_security.main import create_app
from care_security.models.access_control_user import (
    AccessAttempt,
    AccessControlUser,
    AccessHistory,
    SecurityClearance,
)
from care_security.models.security_incident import SecurityIncident
from care_security.models.security_policy import (
    PolicyActions,
    PolicyType,
    SecurityPolicy,
)
from care_security.services.access_control import AccessControlService
from care_security.services.access_control_user_service import (
    AccessControlUserService,
)
from care_security.services.audit import LoggingAuditSink
from care_security.services.policy_engine import PolicyEngine
from care_security.services.security_incident_service import SecurityIncidentService
from care_security.services.security_policy_service import SecurityPolicyService
from tests.fixtures.test_data import NOW


@pytest.fixture(autouse=True)
def reset_settings_cache() -> None:
    clear_settings_cache()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def settings() -> Settings:
    return Settings(api_env="development", log_level="DEBUG")


@pytest.fixture
def engine(clock: FixedClock) -> PolicyEngine:
    return PolicyEngine(clock)


@pytest.fixture
def audit() -> LoggingAuditSink:
    return LoggingAuditSink()


@pytest.fixture
def access_control(clock: FixedClock, settings: Settings) -> AccessControlService:
    return AccessControlService(clock, settings)


@pytest.fixture
def policy_service(
    engine: PolicyEngine, audit: LoggingAuditSink, clock: FixedClock
) -> SecurityPolicyService:
    return SecurityPolicyService(
        InMemoryRepository[SecurityPolicy](), engine, audit, clock
    )


@pytest.fixture
def incident_service(
    audit: LoggingAuditSink, clock: FixedClock
) -> SecurityIncidentService:
    return SecurityIncidentService(InMemoryRepository[SecurityIncident](), audit, clock)


@pytest.fixture
def user_service(
    access_control: AccessControlService,
    audit: LoggingAuditSink,
    clock: FixedClock,
) -> AccessControlUserService:
    return AccessControlUserService(
        InMemoryRepository[AccessControlUser](), access_control, audit, clock
    )


@pytest.fixture
def make_policy() -> Callable[..., SecurityPolicy]:
    """Factory for stored policies that are effective at ``NOW`` and allow."""

    def _make(**overrides: Any) -> SecurityPolicy:
        data: dict[str, Any] = {
            "id": uuid4(),
            "created_at": NOW,
            "updated_at": NOW,
            "name": "Clinical records access",
            "policy_type": PolicyType.ACCESS_CONTROL,
            "effective_date": NOW - timedelta(days=1),
            "actions": PolicyActions(allow=True),
        }
        data.update(overrides)
        return SecurityPolicy(**data)

    return _make


@pytest.fixture
def make_user() -> Callable[..., AccessControlUser]:
    """Factory for staff records with a valid clearance and no history."""

    def _make(**overrides: Any) -> AccessControlUser:
        data: dict[str, Any] = {
            "user_id": "nurse-001",
            "security_clearance": SecurityClearance(
                clearance_date=NOW - timedelta(days=30),
                expiry_date=NOW + timedelta(days=365),
                clearing_authority="DBS",
                background_check_completed=True,
            ),
            "access_history": AccessHistory(capacity=1000),
            "created_at": NOW,
            "updated_at": NOW,
        }
        data.update(overrides)
        return AccessControlUser(**data)

    return _make


@pytest.fixture
def make_attempt() -> Callable[..., AccessAttempt]:
    def _make(success: bool, **overrides: Any) -> AccessAttempt:
        data: dict[str, Any] = {
            "attempt_time": NOW,
            "access_point": "main_entrance",
            "success": success,
        }
        if not success:
            data["failure_reason"] = "invalid credentials"
        data.update(overrides)
        return AccessAttempt(**data)

    return _make


@pytest.fixture
def test_app(settings: Settings, clock: FixedClock) -> FastAPI:
    return create_app(settings, clock)


@pytest_asyncio.fixture
async def async_test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app), base_url="http://test"
    ) as client:
        yield client
