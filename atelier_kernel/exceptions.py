"""
Typed Exception Hierarchy for the Atelier Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the approval lifecycle must be able to tell "nothing happened
because the request id was wrong" from "nothing happened because the actor
was missing" from "the rejection reason was blank".  Each failure therefore
has its own class, a machine-readable ``code`` class attribute, and carries
its context as attributes rather than inside the message string.

Lifecycle operations on ``ApprovalService`` do not raise these errors: they
return them inside an ``ApprovalResult`` (see ``domain/approval.py``).  Rule
stores and loaders raise them directly.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AtelierKernelError (base)
    |
    +-- ApprovalError
    |   +-- ApprovalNotFoundError
    |   +-- ApprovalAlreadyResolvedError
    |   +-- CommentNotFoundError
    |
    +-- ActorError
    |   +-- NoActorError
    |   +-- CommentAuthorMismatchError
    |   +-- TeamMemberNotFoundError
    |
    +-- ApprovalValidationError
    |   +-- RejectionReasonRequiredError
    |   +-- CommentRequiredError
    |   +-- EmptyCommentError
    |   +-- DelegationNotAllowedError
    |   +-- ApprovalLevelOutOfRangeError
    |   +-- EmptyApprovalChainError
    |
    +-- RuleError
    |   +-- RuleNotFoundError
    |   +-- WorkflowRuleNotFoundError
    |   +-- InvalidRuleError
    |
    +-- StorageError
        +-- SnapshotDecodeError
        +-- StoreNotInitializedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When
-------------|-----------------------------|------------------------------------
Approval     | APPROVAL_NOT_FOUND          | Request id not in the collection
             | APPROVAL_ALREADY_RESOLVED   | Mutating an approved/rejected/expired request
             | COMMENT_NOT_FOUND           | Comment id not on the request
-------------|-----------------------------|------------------------------------
Actor        | NO_ACTOR                    | No current user supplied
             | COMMENT_AUTHOR_MISMATCH     | Deleting someone else's comment
             | TEAM_MEMBER_NOT_FOUND       | Delegate target not on the roster
-------------|-----------------------------|------------------------------------
Validation   | REJECTION_REASON_REQUIRED   | Blank rejection reason
             | COMMENT_REQUIRED            | Level demands a comment
             | EMPTY_COMMENT               | Blank comment text
             | DELEGATION_NOT_ALLOWED      | Level forbids delegation
             | APPROVAL_LEVEL_OUT_OF_RANGE | Active level outside the chain
             | EMPTY_APPROVAL_CHAIN        | Request created without configs
-------------|-----------------------------|------------------------------------
Rule         | RULE_NOT_FOUND              | Approval rule id unknown
             | WORKFLOW_RULE_NOT_FOUND     | Workflow rule id unknown
             | INVALID_RULE                | Rule fails structural validation
-------------|-----------------------------|------------------------------------
Storage      | SNAPSHOT_DECODE_FAILED      | Stored payload cannot be decoded
             | STORE_NOT_INITIALIZED       | SQL store used before init
"""


class AtelierKernelError(Exception):
    """
    Base exception for all atelier kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ATELIER_KERNEL_ERROR"


# Approval request errors


class ApprovalError(AtelierKernelError):
    """Base exception for approval request errors."""

    code: str = "APPROVAL_ERROR"


class ApprovalNotFoundError(ApprovalError):
    """Approval request with given ID was not found."""

    code: str = "APPROVAL_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Approval request not found: {request_id}")


class ApprovalAlreadyResolvedError(ApprovalError):
    """
    Approval request is in a terminal status.

    Approved, rejected and expired chains are frozen: no further level
    advancement, delegation or reminders.
    """

    code: str = "APPROVAL_ALREADY_RESOLVED"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Approval request {request_id} is already {status}"
        )


class CommentNotFoundError(ApprovalError):
    """Comment with given ID is not attached to the request."""

    code: str = "COMMENT_NOT_FOUND"

    def __init__(self, request_id: str, comment_id: str):
        self.request_id = request_id
        self.comment_id = comment_id
        super().__init__(
            f"Comment {comment_id} not found on approval request {request_id}"
        )


# Actor errors


class ActorError(AtelierKernelError):
    """Base exception for actor / authorization errors."""

    code: str = "ACTOR_ERROR"


class NoActorError(ActorError):
    """A mutating operation was invoked without a current user."""

    code: str = "NO_ACTOR"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Operation '{operation}' requires an acting user")


class CommentAuthorMismatchError(ActorError):
    """Only the author of a comment may delete it."""

    code: str = "COMMENT_AUTHOR_MISMATCH"

    def __init__(self, comment_id: str, author_id: str, actor_id: str):
        self.comment_id = comment_id
        self.author_id = author_id
        self.actor_id = actor_id
        super().__init__(
            f"User {actor_id} cannot delete comment {comment_id} "
            f"written by {author_id}"
        )


class TeamMemberNotFoundError(ActorError):
    """Team member with given ID is not on the project roster."""

    code: str = "TEAM_MEMBER_NOT_FOUND"

    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__(f"Team member not found: {member_id}")


# Validation errors


class ApprovalValidationError(AtelierKernelError):
    """Base exception for rejected user input on approval actions."""

    code: str = "APPROVAL_VALIDATION_ERROR"


class RejectionReasonRequiredError(ApprovalValidationError):
    """Rejecting requires a non-blank reason."""

    code: str = "REJECTION_REASON_REQUIRED"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(
            f"A reason is required to reject approval request {request_id}"
        )


class CommentRequiredError(ApprovalValidationError):
    """The current approval level requires a comment."""

    code: str = "COMMENT_REQUIRED"

    def __init__(self, request_id: str, level: int):
        self.request_id = request_id
        self.level = level
        super().__init__(
            f"Approval level {level} of request {request_id} requires a comment"
        )


class EmptyCommentError(ApprovalValidationError):
    """Comment text is blank."""

    code: str = "EMPTY_COMMENT"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Comment on approval request {request_id} is empty")


class DelegationNotAllowedError(ApprovalValidationError):
    """The current approval level does not allow delegation."""

    code: str = "DELEGATION_NOT_ALLOWED"

    def __init__(self, request_id: str, level: int):
        self.request_id = request_id
        self.level = level
        super().__init__(
            f"Approval level {level} of request {request_id} "
            f"does not allow delegation"
        )


class ApprovalLevelOutOfRangeError(ApprovalValidationError):
    """An active request's level does not index its approval configs."""

    code: str = "APPROVAL_LEVEL_OUT_OF_RANGE"

    def __init__(self, request_id: str, level: int, levels: int):
        self.request_id = request_id
        self.level = level
        self.levels = levels
        super().__init__(
            f"Approval level {level} of request {request_id} is outside "
            f"its {levels}-level chain"
        )


class EmptyApprovalChainError(ApprovalValidationError):
    """An approval request needs at least one approval config."""

    code: str = "EMPTY_APPROVAL_CHAIN"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(
            f"Cannot request approval for {entity_id}: no approval levels"
        )


# Rule errors


class RuleError(AtelierKernelError):
    """Base exception for rule definition errors."""

    code: str = "RULE_ERROR"


class RuleNotFoundError(RuleError):
    """Approval rule with given ID was not found."""

    code: str = "RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Approval rule not found: {rule_id}")


class WorkflowRuleNotFoundError(RuleError):
    """Workflow rule with given ID was not found."""

    code: str = "WORKFLOW_RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Workflow rule not found: {rule_id}")


class InvalidRuleError(RuleError):
    """Rule definition is structurally invalid."""

    code: str = "INVALID_RULE"

    def __init__(self, rule_name: str, reason: str):
        self.rule_name = rule_name
        self.reason = reason
        super().__init__(f"Invalid rule '{rule_name}': {reason}")


# Storage errors


class StorageError(AtelierKernelError):
    """Base exception for persistence port errors."""

    code: str = "STORAGE_ERROR"


class SnapshotDecodeError(StorageError):
    """A stored snapshot could not be decoded into domain records."""

    code: str = "SNAPSHOT_DECODE_FAILED"

    def __init__(self, key: str, detail: str):
        self.key = key
        self.detail = detail
        super().__init__(f"Cannot decode snapshot '{key}': {detail}")


class StoreNotInitializedError(StorageError):
    """SQL-backed store used before the engine was initialized."""

    code: str = "STORE_NOT_INITIALIZED"

    def __init__(self):
        super().__init__(
            "Engine not initialized. Call init_engine_from_url() first."
        )
