"""Per-gap generation state machine.

States and events are tagged frozen dataclasses; ``transition`` is the only
way to move between states and raises ``IllegalTransitionError`` for any
pair it does not list.

    pending → generating → verifying → passed → done
                  ↑            ↓
                  └─ retrying ←┤
                               └→ failed-final → done (with warning)

Any non-terminal state may abort to ``failed``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from smile_report.exceptions import IllegalTransitionError

# ── States ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Pending:
    name = "pending"


@dataclass(frozen=True)
class Generating:
    attempt: int
    name = "generating"


@dataclass(frozen=True)
class Verifying:
    attempt: int
    name = "verifying"


@dataclass(frozen=True)
class Retrying:
    attempt: int
    confidence: float
    name = "retrying"


@dataclass(frozen=True)
class Passed:
    confidence: float
    name = "passed"


@dataclass(frozen=True)
class FailedFinal:
    confidence: float
    name = "failed_final"


@dataclass(frozen=True)
class Done:
    persisted_with_warning: bool
    name = "done"


@dataclass(frozen=True)
class Failed:
    reason: str
    name = "failed"


GapState = Union[Pending, Generating, Verifying, Retrying, Passed, FailedFinal, Done, Failed]

# ── Events ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StartAttempt:
    """Begin the first attempt or the next one after a retry."""


@dataclass(frozen=True)
class ContentGenerated:
    pass


@dataclass(frozen=True)
class Checked:
    """Verification finished (or the attempt failed with ``confidence`` 0.0)."""

    confidence: float
    accepted: bool
    final_attempt: bool


@dataclass(frozen=True)
class Persisted:
    pass


@dataclass(frozen=True)
class Abort:
    reason: str


GapEvent = Union[StartAttempt, ContentGenerated, Checked, Persisted, Abort]

TERMINAL = (Done, Failed)


def is_terminal(state: GapState) -> bool:
    return isinstance(state, TERMINAL)


def transition(state: GapState, event: GapEvent) -> GapState:
    """Return the state reached from ``state`` on ``event``."""
    if is_terminal(state):
        raise IllegalTransitionError(f"{state.name} is terminal; cannot apply {type(event).__name__}")

    if isinstance(event, Abort):
        return Failed(reason=event.reason)

    if isinstance(event, StartAttempt):
        if isinstance(state, Pending):
            return Generating(attempt=1)
        if isinstance(state, Retrying):
            return Generating(attempt=state.attempt + 1)

    elif isinstance(event, ContentGenerated):
        if isinstance(state, Generating):
            return Verifying(attempt=state.attempt)

    elif isinstance(event, Checked):
        if isinstance(state, (Generating, Verifying)):
            if event.accepted:
                if isinstance(state, Verifying):
                    return Passed(confidence=event.confidence)
            elif event.final_attempt:
                return FailedFinal(confidence=event.confidence)
            else:
                return Retrying(attempt=state.attempt, confidence=event.confidence)

    elif isinstance(event, Persisted):
        if isinstance(state, Passed):
            return Done(persisted_with_warning=False)
        if isinstance(state, FailedFinal):
            return Done(persisted_with_warning=True)

    raise IllegalTransitionError(f"Illegal transition: {state.name} on {type(event).__name__}")
