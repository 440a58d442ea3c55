"""
Pytest fixtures for the atelier test suite.

Provides:
- Structured logging configured once per session, with per-test
  LogContext isolation and a ``captured_logs`` helper.
- A deterministic clock and a small studio roster.
- In-memory and SQLite-backed key-value stores.
- Wired kernel services (approval lifecycle, rule stores) and the
  orchestration services built on them.
"""

import json
import logging
from io import StringIO

import pytest

from atelier_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from atelier_kernel.db.store import InMemoryStore, SqlKeyValueStore
from atelier_kernel.domain.clock import DeterministicClock
from atelier_kernel.domain.entities import TeamMember
from atelier_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from atelier_kernel.services.approval_service import ApprovalService
from atelier_kernel.services.rule_store import ApprovalRuleStore
from atelier_kernel.services.workflow_rule_store import WorkflowRuleStore
from atelier_services.rule_application import RuleApplicator

PROJECT_ID = "proj-villa-azul"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture atelier_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, approvals):
            approvals.approve(...)
            logs = captured_logs()
            assert any(r["message"] == "approval_request_approved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("atelier_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and roster
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def project_manager():
    return TeamMember(id="tm-pm", name="Priya Shah", role="Project Manager")


@pytest.fixture
def design_head():
    return TeamMember(id="tm-design", name="Marco Bianchi", role="Design Head")


@pytest.fixture
def studio_admin():
    return TeamMember(id="tm-admin", name="Lee Okafor", role="Studio Admin")


@pytest.fixture
def technical_lead():
    return TeamMember(id="tm-tech", name="Sam Hollis", role="Technical Design Lead")


@pytest.fixture
def team_members(project_manager, design_head, studio_admin, technical_lead):
    return (project_manager, design_head, studio_admin, technical_lead)


@pytest.fixture
def actor(project_manager):
    """The member performing actions unless a test says otherwise."""
    return project_manager


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def sqlite_session_factory():
    """Fresh in-memory SQLite database with the snapshot table created."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def sql_store(sqlite_session_factory):
    return SqlKeyValueStore(sqlite_session_factory)


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def approvals(memory_store, team_members, clock):
    return ApprovalService(memory_store, PROJECT_ID, team_members, clock=clock)


@pytest.fixture
def rule_store(memory_store, clock):
    return ApprovalRuleStore(memory_store, clock=clock)


@pytest.fixture
def workflow_rules(memory_store, clock):
    return WorkflowRuleStore(memory_store, project_id=PROJECT_ID, clock=clock)


@pytest.fixture
def applicator(rule_store, memory_store, team_members, clock):
    return RuleApplicator(rule_store, memory_store, team_members, clock=clock)
