"""
State machine for pipeline execution.

Orchestrates state transitions and handler execution.
"""

import logging
from typing import Dict

from domain.errors import PhaseError
from .context import PipelineContext
from .states import PipelineState, is_valid_transition
from .handlers.base import StateHandler


class StateMachine:
    """
    State machine for orchestrating one analysis run.

    Manages state transitions and delegates work to state handlers.
    Invalid transitions and phase re-entry raise PhaseError.
    """

    def __init__(self, handlers: Dict[PipelineState, StateHandler]):
        """
        Initialize state machine.

        Args:
            handlers: Dict mapping states to their handlers

        Raises:
            PhaseError: If a non-terminal state has no handler
        """
        self.handlers = handlers
        self.logger = logging.getLogger(self.__class__.__name__)

        self._validate_handlers()

    def _validate_handlers(self):
        """Every non-terminal state needs a handler; phases are never skipped."""
        required_states = {s for s in PipelineState if not s.is_terminal()}

        missing = required_states - set(self.handlers.keys())
        if missing:
            raise PhaseError(
                f"Missing handlers for states: {sorted(str(s) for s in missing)}"
            )

    def run(self, initial_context: PipelineContext) -> PipelineContext:
        """
        Run the state machine until FINALIZED.

        Args:
            initial_context: Context in STREAMING with empty accumulators

        Returns:
            Final pipeline context

        Raises:
            PhaseError: If the context was already run, or a handler asks
                for an invalid transition
        """
        context = initial_context

        if context.visited or context.current_state is not PipelineState.STREAMING:
            raise PhaseError(
                f"A run must start in {PipelineState.STREAMING} with no phase visited, "
                f"got {context.current_state} after {[str(s) for s in context.visited]}"
            )

        self.logger.info("=" * 60)
        self.logger.info("Starting analysis")
        self.logger.info("=" * 60)

        while not context.is_terminal:
            context = self._execute_state(context)

        self._log_final_state(context)
        return context

    def _execute_state(self, context: PipelineContext) -> PipelineContext:
        """
        Execute the current state's handler and move to the next state.

        Args:
            context: Current pipeline context

        Returns:
            Updated pipeline context
        """
        current_state = context.current_state

        if context.has_visited(current_state):
            raise PhaseError(f"Phase {current_state} cannot be re-entered")

        self.logger.info(f"Current state: {current_state}")

        handler = self.handlers[current_state]
        updated_context, next_state = handler.handle(context)

        if not is_valid_transition(current_state, next_state):
            raise PhaseError(f"Invalid state transition: {current_state} → {next_state}")
        if updated_context.has_visited(next_state):
            raise PhaseError(f"Phase {next_state} cannot be re-entered")

        self.logger.info(f"Transition: {current_state} → {next_state}")
        return updated_context.with_state(next_state)

    def _log_final_state(self, context: PipelineContext):
        """Log final pipeline state."""
        self.logger.info("=" * 60)
        self.logger.info("✓ Analysis finalized")
        self.logger.info(f"Elapsed time: {context.elapsed_time:.1f}s")

        summary = context.get_summary()
        for key, value in summary.items():
            self.logger.info(f"  {key}: {value}")

        self.logger.info("=" * 60)
