"""
Pipeline states.

Explicit state enumeration for the analysis state machine.
"""

from enum import Enum, auto


class PipelineState(Enum):
    """
    Phases of one analysis run.

    STREAMING reads, selects, classifies and fills; UNFOLDING makes a
    single pass over all bins after the stream is exhausted; FINALIZED
    holds read-only results. No phase is entered twice.
    """

    STREAMING = auto()
    UNFOLDING = auto()
    FINALIZED = auto()

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self is PipelineState.FINALIZED

    def __str__(self) -> str:
        """String representation of state."""
        return self.name


# Valid state transitions
VALID_TRANSITIONS = {
    PipelineState.STREAMING: {PipelineState.UNFOLDING},
    PipelineState.UNFOLDING: {PipelineState.FINALIZED},
    PipelineState.FINALIZED: set(),  # Terminal
}


def is_valid_transition(from_state: PipelineState, to_state: PipelineState) -> bool:
    """
    Check if a state transition is valid.

    Args:
        from_state: Current state
        to_state: Target state

    Returns:
        True if transition is valid
    """
    return to_state in VALID_TRANSITIONS.get(from_state, set())
