"""
Hypothesis-based property tests for the approval core.

Properties checked:
- Matching is pure: same inputs, same output, inputs untouched, input
  order preserved, and rules with empty criteria match every entity of
  their type.
- Approver resolution always yields a roster member (or the unassigned
  placeholder for an empty roster) and never raises.
- Chain advancement: each approval below the last level moves the level
  forward by exactly one; the last one approves and freezes the level.
- Rejection at any level ends the chain immediately.
- History only grows, by a fixed number of entries per operation.
"""

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from atelier_engines.approver_resolver import UNASSIGNED_APPROVER, resolve_approver
from atelier_engines.rule_matcher import match_rules
from atelier_kernel.db.store import InMemoryStore
from atelier_kernel.domain.approval import ApprovalConfig, ApprovalRule, MatchingCriteria
from atelier_kernel.domain.clock import DeterministicClock
from atelier_kernel.domain.entities import StageDocument, TeamMember, Task
from atelier_kernel.domain.values import (
    ApprovalEntityType,
    ApprovalStatus,
    ApproverType,
    DocumentCategory,
    TaskPriority,
    WorkflowStage,
)
from atelier_kernel.services.approval_service import ApprovalService

FUZZ_SETTINGS = settings(
    max_examples=60,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)

ROLES = ["Project Manager", "Design Head", "Studio Admin", "Site Supervisor", "Buyer"]


# =============================================================================
# Strategies
# =============================================================================


stages = st.sampled_from(list(WorkflowStage))
priorities = st.sampled_from(list(TaskPriority))
categories = st.sampled_from(list(DocumentCategory))
tags = st.lists(st.sampled_from(["vip", "rush", "joinery", "lighting"]), max_size=3)
titles = st.sampled_from(["Kitchen layout", "Budget quote", "Lighting plan", "Survey", ""])


@st.composite
def tasks(draw):
    return Task(
        id=f"task-{draw(st.integers(0, 999))}",
        title=draw(titles),
        stage=draw(stages),
        priority=draw(priorities),
        tags=tuple(draw(tags)),
    )


@st.composite
def documents(draw):
    return StageDocument(
        id=f"doc-{draw(st.integers(0, 999))}",
        title=draw(titles),
        stage=draw(stages),
        category=draw(categories),
        tags=tuple(draw(tags)),
    )


@st.composite
def criteria(draw):
    return MatchingCriteria(
        stages=tuple(draw(st.lists(stages, max_size=2, unique=True))),
        priorities=tuple(draw(st.lists(priorities, max_size=2, unique=True))),
        document_categories=tuple(draw(st.lists(categories, max_size=2, unique=True))),
        title_pattern=draw(st.sampled_from([None, "kitchen", "budget|quote", "[bad"])),
        tags=tuple(draw(tags)),
    )


def config(order: int, approver_type=ApproverType.DEPARTMENT_HEAD, role="Design"):
    return ApprovalConfig(
        id=f"c{order}",
        entity_type=ApprovalEntityType.TASK,
        name=f"Level {order}",
        approver_type=approver_type,
        approver_role=role,
        order=order,
    )


@st.composite
def rules(draw):
    count = draw(st.integers(0, 6))
    return [
        ApprovalRule(
            id=f"rule-{i}",
            name=f"Rule {i}",
            entity_type=draw(st.sampled_from(list(ApprovalEntityType))),
            approval_configs=(config(0),),
            matching_criteria=draw(criteria()),
            enabled=draw(st.booleans()),
        )
        for i in range(count)
    ]


rosters = st.lists(
    st.builds(
        TeamMember,
        id=st.uuids().map(str),
        name=st.text(min_size=1, max_size=10),
        role=st.sampled_from(ROLES),
    ),
    max_size=5,
)


def roster():
    return (
        TeamMember(id="tm-pm", name="Priya", role="Project Manager"),
        TeamMember(id="tm-design", name="Marco", role="Design Head"),
        TeamMember(id="tm-admin", name="Lee", role="Studio Admin"),
    )


def new_request(service, levels, actor):
    return service.create_request(
        entity_type=ApprovalEntityType.TASK,
        entity_id="task-1",
        entity_name="Kitchen layout",
        stage=WorkflowStage.DESIGN,
        approval_configs=[config(i) for i in range(levels)],
        requested_by=actor,
    ).unwrap()


# =============================================================================
# Matching
# =============================================================================


class TestMatchingProperties:
    @FUZZ_SETTINGS
    @given(entity=st.one_of(tasks(), documents()), candidates=rules())
    def test_pure_and_order_preserving(self, entity, candidates):
        snapshot = list(candidates)

        first = match_rules(entity, candidates)
        second = match_rules(entity, candidates)

        assert first == second
        assert candidates == snapshot
        positions = [candidates.index(r) for r in first]
        assert positions == sorted(positions)
        assert all(r.enabled and r.entity_type == entity.entity_type for r in first)

    @FUZZ_SETTINGS
    @given(entity=st.one_of(tasks(), documents()))
    def test_empty_criteria_match_every_entity_of_type(self, entity):
        rule = ApprovalRule(
            id="any",
            name="Any",
            entity_type=entity.entity_type,
            approval_configs=(config(0),),
        )
        assert match_rules(entity, [rule]) == (rule,)


# =============================================================================
# Approver resolution
# =============================================================================


class TestResolverProperties:
    @FUZZ_SETTINGS
    @given(
        team=rosters,
        approver_type=st.sampled_from(list(ApproverType)),
        role=st.one_of(st.none(), st.text(max_size=12)),
    )
    def test_always_resolves(self, team, approver_type, role):
        resolved = resolve_approver(config(0, approver_type, role), team)

        assert resolved is not None
        if approver_type in (ApproverType.CLIENT, ApproverType.EXTERNAL):
            assert resolved.id.endswith("-placeholder")
        elif team:
            assert resolved in team
        else:
            assert resolved == UNASSIGNED_APPROVER

    @FUZZ_SETTINGS
    @given(team=rosters.filter(bool))
    def test_unmatched_role_falls_back_to_first_member(self, team):
        unmatched = config(0, ApproverType.DEPARTMENT_HEAD, "Astronomy")
        assert resolve_approver(unmatched, team) == team[0]


# =============================================================================
# Lifecycle
# =============================================================================


class TestChainProperties:
    @FUZZ_SETTINGS
    @given(levels=st.integers(1, 5))
    def test_each_approval_advances_one_level(self, levels):
        team = roster()
        service = ApprovalService(InMemoryStore(), "p-fuzz", team, DeterministicClock())
        request = new_request(service, levels, team[0])

        for expected_level in range(1, levels):
            request = service.approve(request.id, team[0]).unwrap()
            assert request.current_approval_level == expected_level
            assert request.status == ApprovalStatus.PENDING

        request = service.approve(request.id, team[0]).unwrap()
        assert request.status == ApprovalStatus.APPROVED
        assert request.current_approval_level == levels - 1
        assert not service.approve(request.id, team[0]).success

    @FUZZ_SETTINGS
    @given(data=st.data(), levels=st.integers(1, 5))
    def test_reject_short_circuits(self, data, levels):
        team = roster()
        service = ApprovalService(InMemoryStore(), "p-fuzz", team, DeterministicClock())
        request = new_request(service, levels, team[0])

        stop_at = data.draw(st.integers(0, levels - 1))
        for _ in range(stop_at):
            request = service.approve(request.id, team[0]).unwrap()

        request = service.reject(request.id, team[0], "Not to brief").unwrap()
        assert request.status == ApprovalStatus.REJECTED
        assert request.current_approval_level == stop_at
        assert not service.approve(request.id, team[0]).success
        assert service.get_request(request.id).current_approval_level == stop_at


OPERATIONS = st.sampled_from(["approve", "reject", "delegate", "comment", "remind"])


class TestHistoryProperties:
    @FUZZ_SETTINGS
    @given(levels=st.integers(1, 4), operations=st.lists(OPERATIONS, max_size=8))
    def test_history_only_grows(self, levels, operations):
        team = roster()
        service = ApprovalService(InMemoryStore(), "p-fuzz", team, DeterministicClock())
        request = new_request(service, levels, team[0])
        history = request.history

        for operation in operations:
            before = service.get_request(request.id)
            if operation == "approve":
                result = service.approve(request.id, team[0])
                advancing = before.current_approval_level + 1 < levels
                added = 2 if advancing else 1
            elif operation == "reject":
                result = service.reject(request.id, team[0], "Over budget")
                added = 1
            elif operation == "delegate":
                # levels built here never allow delegation
                result = service.delegate(request.id, team[0], "tm-admin")
                added = 0
            elif operation == "comment":
                result = service.add_comment(request.id, team[0], "Noted")
                added = 1
            else:
                result = service.send_reminder(request.id, team[0])
                added = 1

            after = service.get_request(request.id)
            if not result.success:
                added = 0
            assert after.history[:len(history)] == history
            assert len(after.history) == len(history) + added
            history = after.history
