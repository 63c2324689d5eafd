"""Timesheet workflow states and transitions.

State Machine Diagram:

    ┌──────────┐  submit   ┌───────────┐  approve  ┌──────────┐
    │  DRAFT   │──────────►│ SUBMITTED │──────────►│ APPROVED │ (locked)
    └──────────┘◄──────────└─────┬─────┘           └────┬─────┘
         ▲         withdraw      │ return               │
         │                 ┌─────▼─────┐                │
         └─────────────────│ RETURNED  │                │
         │      edit       └───────────┘                │
         └──────────────────────────────────────────────┘
                            unlock (admin)

No state is terminal: an admin Unlock always brings APPROVED back to DRAFT.
"""

from enum import Enum
from typing import Set, Dict, Optional, NamedTuple


class TimesheetStatus(str, Enum):
    """States in the timesheet approval workflow."""
    
    DRAFT = "Draft"              # Editable by the owner
    SUBMITTED = "Submitted"      # Awaiting an approver
    APPROVED = "Approved"        # Approved and locked
    RETURNED = "Returned"        # Sent back to the owner with a reason


class TimesheetEvent(str, Enum):
    """Events that trigger state transitions."""
    
    SUBMIT = "submit"        # DRAFT → SUBMITTED
    WITHDRAW = "withdraw"    # SUBMITTED → DRAFT
    APPROVE = "approve"      # SUBMITTED → APPROVED
    RETURN = "return"        # SUBMITTED → RETURNED
    EDIT = "edit"            # RETURNED → DRAFT (first entry mutation)
    UNLOCK = "unlock"        # APPROVED → DRAFT (admin only)


class AuditAction(str, Enum):
    """Actions recorded in the timesheet history."""
    
    CREATED = "Created"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    RETURNED = "Returned"
    WITHDRAWN = "Withdrawn"
    UNLOCKED = "Unlocked"
    MODIFIED = "Modified"


class Actor(str, Enum):
    """Who is allowed to fire an event."""
    
    OWNER = "owner"
    APPROVER = "approver"
    ADMIN = "admin"


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: TimesheetStatus
    to_state: TimesheetStatus
    event: TimesheetEvent
    actor: Actor
    audit_action: AuditAction
    requires_reason: bool = False


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(TimesheetStatus.DRAFT, TimesheetStatus.SUBMITTED, TimesheetEvent.SUBMIT,
                   Actor.OWNER, AuditAction.SUBMITTED),
    TransitionRule(TimesheetStatus.SUBMITTED, TimesheetStatus.DRAFT, TimesheetEvent.WITHDRAW,
                   Actor.OWNER, AuditAction.WITHDRAWN),
    TransitionRule(TimesheetStatus.SUBMITTED, TimesheetStatus.APPROVED, TimesheetEvent.APPROVE,
                   Actor.APPROVER, AuditAction.APPROVED),
    TransitionRule(TimesheetStatus.SUBMITTED, TimesheetStatus.RETURNED, TimesheetEvent.RETURN,
                   Actor.APPROVER, AuditAction.RETURNED, requires_reason=True),
    TransitionRule(TimesheetStatus.RETURNED, TimesheetStatus.DRAFT, TimesheetEvent.EDIT,
                   Actor.OWNER, AuditAction.MODIFIED),
    TransitionRule(TimesheetStatus.APPROVED, TimesheetStatus.DRAFT, TimesheetEvent.UNLOCK,
                   Actor.ADMIN, AuditAction.UNLOCKED, requires_reason=True),
]

# Build lookup tables for efficient access
VALID_TRANSITIONS: Dict[TimesheetStatus, Set[TimesheetEvent]] = {}
TRANSITION_TARGETS: Dict[tuple[TimesheetStatus, TimesheetEvent], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.event)
    TRANSITION_TARGETS[(rule.from_state, rule.event)] = rule


# The only state in which a timesheet is locked
LOCKED_STATES: Set[TimesheetStatus] = {
    TimesheetStatus.APPROVED,
}

# Timesheets in these states may be physically deleted
DELETABLE_STATES: Set[TimesheetStatus] = {
    TimesheetStatus.DRAFT,
}


def can_transition(from_state: TimesheetStatus, event: TimesheetEvent) -> bool:
    """Check if an event is valid from the given state."""
    return event in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(from_state: TimesheetStatus, event: TimesheetEvent) -> Optional[TransitionRule]:
    """Get the transition rule for a state/event combination."""
    return TRANSITION_TARGETS.get((from_state, event))


def is_reachable(status: TimesheetStatus, is_locked: bool) -> bool:
    """A timesheet is locked exactly when it is approved."""
    return is_locked == (status in LOCKED_STATES)
