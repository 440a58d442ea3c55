"""
Tests for structured logging and the engine tracer.

- JSON line shape, context fields and extras
- kernel errors logged with their code and attributes
- LogContext binding as used by the approval services
- configure_logging idempotence
- ATELIER_ENGINE_TRACE records from @traced_engine
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from atelier_engines.tracer import compute_input_fingerprint, traced_engine
from atelier_kernel.domain.approval import ApprovalConfig
from atelier_kernel.domain.values import (
    ApprovalEntityType,
    ApprovalStatus,
    ApproverType,
    WorkflowStage,
)
from atelier_kernel.exceptions import CommentRequiredError
from atelier_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture
def json_lines():
    """Fresh logging setup writing to a buffer; returns a reader of parsed lines.

    The suite-wide DEBUG setup is restored afterwards.
    """
    reset_logging()
    stream = StringIO()
    configure_logging(level=logging.INFO, stream=stream)

    def _read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    yield _read

    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


# =========================================================================
# Record shape
# =========================================================================


class TestRecordShape:
    def test_base_keys(self, json_lines):
        get_logger("services.approval_service").info("approval_request_created")

        [record] = json_lines()
        assert record["level"] == "INFO"
        assert record["message"] == "approval_request_created"
        assert record["logger"] == "atelier_kernel.services.approval_service"
        assert datetime.fromisoformat(record["ts"]).tzinfo is not None

    def test_extras_and_reserved_keys(self, json_lines):
        get_logger("x").info(
            "approval_level_advanced",
            extra={"level": 2, "approval_level": 1, "status": ApprovalStatus.PENDING},
        )

        [record] = json_lines()
        assert record["level"] == "INFO"
        assert record["approval_level"] == 1
        assert record["status"] == "pending"

    def test_datetimes_rendered_iso(self, json_lines):
        when = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)
        get_logger("x").info("approval_requests_expired", extra={"cutoff": when})
        assert json_lines()[0]["cutoff"] == when.isoformat()

    def test_bound_context_wins_over_extra(self, json_lines):
        with LogContext.bind(project_id="proj-villa-azul"):
            get_logger("x").info("stage_gate_evaluated", extra={"project_id": "other"})
        assert json_lines()[0]["project_id"] == "proj-villa-azul"

    def test_kernel_error_fields(self, json_lines):
        try:
            raise CommentRequiredError("apr-1", 1)
        except CommentRequiredError:
            get_logger("x").error("approve_failed", exc_info=True)

        [record] = json_lines()
        assert record["exc_type"] == "CommentRequiredError"
        assert record["exc_code"] == "COMMENT_REQUIRED"
        assert record["exc_request_id"] == "apr-1"
        assert record["exc_level"] == 1
        assert "CommentRequiredError" in record["traceback"]

    def test_plain_error_has_no_code(self, json_lines):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("x").error("failed", exc_info=True)

        [record] = json_lines()
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record

    def test_debug_below_configured_level(self, json_lines):
        logger = get_logger("x")
        logger.debug("hidden")
        logger.warning("shown")
        assert [r["message"] for r in json_lines()] == ["shown"]


# =========================================================================
# LogContext
# =========================================================================


class TestLogContext:
    def test_only_known_fields_kept(self):
        LogContext.set(project_id="p", actor_id=None, colour="teal")
        assert LogContext.get_all() == {"project_id": "p"}

    def test_bind_nests_and_restores(self):
        with LogContext.bind(project_id="p", actor_id="tm-pm"):
            with LogContext.bind(request_id="apr-1", actor_id="tm-head"):
                assert LogContext.get_all() == {
                    "project_id": "p", "actor_id": "tm-head", "request_id": "apr-1",
                }
            assert LogContext.get_all() == {"project_id": "p", "actor_id": "tm-pm"}
        assert LogContext.get_all() == {}

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(request_id="apr-1"):
                raise RuntimeError
        assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(actor_id="tm-pm")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_service_binds_request_and_actor(self, captured_logs, approvals, actor):
        config = ApprovalConfig(
            id="cfg-0", entity_type=ApprovalEntityType.TASK, name="PM",
            approver_type=ApproverType.PROJECT_MANAGER,
        )
        request = approvals.create_request(
            entity_type=ApprovalEntityType.TASK, entity_id="task-1",
            entity_name="Sofa", stage=WorkflowStage.DESIGN,
            approval_configs=(config,), requested_by=actor,
        ).unwrap()
        approvals.approve(request.id, actor)

        approved = [
            r for r in captured_logs() if r["message"] == "approval_request_approved"
        ]
        assert approved[0]["request_id"] == request.id
        assert approved[0]["actor_id"] == actor.id
        assert LogContext.get_all() == {}


# =========================================================================
# configure_logging
# =========================================================================


class TestConfigureLogging:
    def test_second_call_is_noop(self, json_lines):
        root = logging.getLogger("atelier_kernel")
        before = list(root.handlers)
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert root.handlers == before
        assert root.propagate is False

    def test_supplied_handler_gets_formatter(self):
        reset_logging()
        handler = logging.StreamHandler(StringIO())
        try:
            configure_logging(handler=handler)
            assert isinstance(handler.formatter, StructuredFormatter)
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG, stream=StringIO())


# =========================================================================
# Engine tracer
# =========================================================================


@traced_engine("sample", "2.1", fingerprint_fields=("stage", "limit"))
def _sample_engine(stage, limit=3):
    return f"{stage}:{limit}"


class TestTracedEngine:
    def test_emits_trace_record(self, captured_logs):
        assert _sample_engine("Design", limit=5) == "Design:5"

        [record] = [r for r in captured_logs() if r["message"] == "ATELIER_ENGINE_TRACE"]
        assert record["engine_name"] == "sample"
        assert record["engine_version"] == "2.1"
        assert len(record["input_fingerprint"]) == 16
        assert record["function"] == "_sample_engine"

    def test_positional_and_keyword_calls_fingerprint_alike(self, captured_logs):
        _sample_engine("Design", 5)
        _sample_engine(stage="Design", limit=5)
        _sample_engine("Sales", 5)

        prints = [
            r["input_fingerprint"] for r in captured_logs()
            if r["message"] == "ATELIER_ENGINE_TRACE"
        ]
        assert prints[0] == prints[1]
        assert prints[0] != prints[2]

    def test_missing_fields_recorded_as_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(
            ("a",), {"a": None},
        )
