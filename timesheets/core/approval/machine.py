"""Timesheet state machine implementation.

Validates transitions against the transition table and checks that the actor
is the kind of user the event requires. Persistence is the service's concern.
"""

from typing import Optional
from uuid import UUID

from timesheets.core.exceptions import AuthorizationError, StateConflictError, ValidationError
from .states import (
    Actor,
    TimesheetStatus,
    TimesheetEvent,
    TransitionRule,
    can_transition,
    get_transition_rule,
)


class TimesheetStateMachine:
    """
    State machine for a single timesheet.
    
    Manages transitions between workflow states with:
    - Validation of valid transitions (StateConflictError)
    - Actor checks: owner, authorized approver, or admin (AuthorizationError)
    - Required reasons for Return and Unlock (ValidationError)
    """
    
    def __init__(
        self,
        timesheet_id: UUID,
        current_state: TimesheetStatus,
        *,
        owner_id: UUID,
        actor_id: UUID,
        actor_is_admin: bool = False,
        actor_is_approver: bool = False,
    ):
        """
        Initialize the state machine.
        
        Args:
            timesheet_id: ID of the timesheet
            current_state: Status as read from storage
            owner_id: User who owns the timesheet
            actor_id: User requesting the transition
            actor_is_admin: Whether the actor holds the admin role
            actor_is_approver: Whether the actor resolved as an approver
        """
        self.timesheet_id = timesheet_id
        self._state = TimesheetStatus(current_state)
        self.owner_id = owner_id
        self.actor_id = actor_id
        self.actor_is_admin = actor_is_admin
        self.actor_is_approver = actor_is_approver
    
    @property
    def state(self) -> TimesheetStatus:
        """Current state of the timesheet."""
        return self._state
    
    def can_perform(self, event: TimesheetEvent) -> bool:
        """Check if an event can be performed by this actor from the current state."""
        rule = get_transition_rule(self._state, event)
        if rule is None:
            return False
        return self._actor_allowed(rule.actor)
    
    def get_available_transitions(self) -> list[TimesheetEvent]:
        """Get list of events this actor may fire from the current state."""
        return [event for event in TimesheetEvent if self.can_perform(event)]
    
    def require_state(self, event: TimesheetEvent) -> TransitionRule:
        """Ensure the event is valid from the current state, ignoring the actor."""
        if not can_transition(self._state, event):
            raise StateConflictError(
                f"Cannot {event.value} a timesheet in state {self._state.value}",
                timesheet_id=self.timesheet_id,
                current_status=self._state,
                event=event,
            )
        return get_transition_rule(self._state, event)
    
    def check(self, event: TimesheetEvent, *, reason: Optional[str] = None) -> TransitionRule:
        """
        Validate an event without applying it.
        
        Checks run in order: state, actor, reason.
        """
        rule = self.require_state(event)
        
        if not self._actor_allowed(rule.actor):
            raise AuthorizationError(
                self._actor_denied_message(rule),
                timesheet_id=self.timesheet_id,
                event=event,
            )
        
        if rule.requires_reason and not (reason and reason.strip()):
            raise ValidationError(
                f"A reason is required to {event.value} a timesheet",
                timesheet_id=self.timesheet_id,
                event=event,
            )
        
        return rule
    
    def transition(
        self,
        event: TimesheetEvent,
        *,
        reason: Optional[str] = None,
    ) -> TransitionRule:
        """
        Perform a state transition.
        
        Args:
            event: The event to fire
            reason: Free text reason (required for some events)
            
        Returns:
            The transition rule that was applied
            
        Raises:
            StateConflictError: If the event is invalid from the current state
            AuthorizationError: If the actor may not fire the event
            ValidationError: If a required reason is missing
        """
        rule = self.check(event, reason=reason)
        self._state = rule.to_state
        return rule
    
    def _actor_allowed(self, actor: Actor) -> bool:
        if actor == Actor.OWNER:
            return self.actor_id == self.owner_id
        if actor == Actor.APPROVER:
            return self.actor_is_approver
        if actor == Actor.ADMIN:
            return self.actor_is_admin
        return False
    
    @staticmethod
    def _actor_denied_message(rule: TransitionRule) -> str:
        if rule.actor == Actor.OWNER:
            return f"Only the owner can {rule.event.value} this timesheet"
        if rule.actor == Actor.ADMIN:
            return f"Only an administrator can {rule.event.value} a timesheet"
        return f"You are not authorized to {rule.event.value} this timesheet"
    
