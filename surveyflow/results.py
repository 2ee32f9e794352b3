"""
Result types returned by SurveySessionMachine.handle()

These are the ONLY return types from the command handler.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from surveyflow.core.session_state import SurveySession
from surveyflow.utils.session_phases import SessionPhase

LEVEL_ERROR = "error"
LEVEL_INFO = "info"


@dataclass(frozen=True)
class Notification:
    """
    Transient, auto-dismissing user-facing message (a toast).

    Attributes:
        message: Text to display
        level: 'error' or 'info'
        dismiss_after: Seconds until the front end should hide it
    """
    message: str
    level: str = LEVEL_ERROR
    dismiss_after: float = 4.0


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of one accepted command.

    Attributes:
        session: Session to use for the next command. On failure this is
                 the pre-call session (nothing partial committed).
        trail: Phases passed through during the command, in order,
               ending with session.phase
        notification: Toast to show, if any
        payload: View data for the phase (e.g. review rows)
    """
    session: SurveySession
    trail: Tuple[SessionPhase, ...] = ()
    notification: Optional[Notification] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def phase(self) -> SessionPhase:
        return self.session.phase

    @property
    def failed(self) -> bool:
        return self.notification is not None and self.notification.level == LEVEL_ERROR


@dataclass(frozen=True)
class IllegalCommand:
    """
    Command rejected by the machine (invalid for the current phase or
    invalid input). The session is untouched.

    Examples:
    - SubmitAnswer while ROUND_COMPLETE
    - RequestSummary before any answers
    - SendChatMessage with a blank message
    """
    reason: str
    command_type: str
