# ==============================
# Orchestrator State
# ==============================
"""
Conversation loop states.

AWAITING_MODEL -> FINAL_ANSWER -> TERMINATED
AWAITING_MODEL -> CAPABILITY_CALLS_REQUESTED -> EXECUTING_CAPABILITIES -> AWAITING_MODEL
Any state -> TERMINATED (iteration bound, backend failure, cancellation)
"""

# ==============================
# Imports
# ==============================
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class LoopState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    FINAL_ANSWER = "final_answer"
    CAPABILITY_CALLS_REQUESTED = "capability_calls_requested"
    EXECUTING_CAPABILITIES = "executing_capabilities"
    TERMINATED = "terminated"


# ==============================
# Transitions
# ==============================
TRANSITIONS: Dict[LoopState, FrozenSet[LoopState]] = {
    LoopState.AWAITING_MODEL: frozenset(
        {LoopState.FINAL_ANSWER, LoopState.CAPABILITY_CALLS_REQUESTED, LoopState.TERMINATED}
    ),
    LoopState.FINAL_ANSWER: frozenset({LoopState.TERMINATED}),
    LoopState.CAPABILITY_CALLS_REQUESTED: frozenset({LoopState.EXECUTING_CAPABILITIES, LoopState.TERMINATED}),
    LoopState.EXECUTING_CAPABILITIES: frozenset({LoopState.AWAITING_MODEL, LoopState.TERMINATED}),
    LoopState.TERMINATED: frozenset(),
}


def can_transition(current: LoopState, nxt: LoopState) -> bool:
    return nxt in TRANSITIONS[current]
