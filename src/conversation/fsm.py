"""Finite state machine for interview phase control.

The FSM validates transitions, enforces completeness guards and emits
phase-change events. The LLM never decides transitions, only the FSM does.
"""

from __future__ import annotations

import logging

from src.admin.events import emit
from src.conversation.states import GUARDS, TRANSITIONS
from src.schemas.events import EventType, SystemEvent
from src.schemas.form import FormState, Section

logger = logging.getLogger(__name__)


class TransitionError(ValueError):
    """A trigger is unknown for the current phase or its guard failed."""


class FSM:
    """Manages phase transitions for a single turn of a single session."""

    def __init__(
        self,
        session_id: str | None,
        initial_state: Section = Section.JOB_DETAILS,
    ) -> None:
        self.session_id = session_id
        self.current_state = initial_state

    def can_transition(self, trigger: str, form_state: FormState | None = None) -> bool:
        """Check if a trigger is valid from the current state (and its guard holds)."""
        if trigger not in TRANSITIONS.get(self.current_state, {}):
            return False
        if form_state is None:
            return True
        guard = GUARDS.get(trigger)
        return guard is None or guard(form_state)

    async def transition(self, trigger: str, form_state: FormState) -> Section:
        """Execute a phase transition.

        Args:
            trigger: Trigger name, e.g. "job_complete".
            form_state: The state whose data the guard is evaluated against.

        Returns:
            The new phase after transition.

        Raises:
            TransitionError: If the trigger is not valid from the current
                phase or the completeness guard fails.
        """
        old_state = self.current_state
        state_transitions = TRANSITIONS.get(self.current_state, {})
        if trigger not in state_transitions:
            msg = (
                f"Invalid transition: {self.current_state.value} --{trigger}--> ??? "
                f"(valid: {list(state_transitions.keys())})"
            )
            raise TransitionError(msg)

        guard = GUARDS.get(trigger)
        if guard is not None and not guard(form_state):
            msg = f"Guard rejected transition: {self.current_state.value} --{trigger}--> (incomplete data)"
            raise TransitionError(msg)

        self.current_state = state_transitions[trigger]

        logger.info(
            "Phase transition: %s --%s--> %s (session=%s)",
            old_state.value,
            trigger,
            self.current_state.value,
            self.session_id,
        )

        await emit(SystemEvent(
            event_type=EventType.PHASE_CHANGED,
            session_id=self.session_id,
            data={
                "from_state": old_state.value,
                "to_state": self.current_state.value,
                "trigger": trigger,
            },
            source_module="conversation.fsm",
        ))

        return self.current_state

    @property
    def is_terminal(self) -> bool:
        """Check if the current state is a terminal state."""
        return len(TRANSITIONS.get(self.current_state, {})) == 0
