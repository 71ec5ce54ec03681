"""
State machine for a candidate's BCQ sitting.

States are immutable values and ``transition`` is a pure function from
(state, event) to the next state. Side effects (token checks, uploads,
database writes) live in ``BCQSessionController``; this module only decides
where the session goes next.

    Loading -> Invalid
    Loading -> Ready -> Submitting(uploading) -> Submitting(transcribing) -> Ready ...
    Ready -> Completed
    any active state -> Error -> Ready (dismiss)
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union


class InvalidTransition(ValueError):
    """Raised when an event is not accepted in the current state."""

    def __init__(self, state: "SessionState", event: "SessionEvent"):
        self.state = state
        self.event = event
        super().__init__(
            f"{type(event).__name__} is not allowed in state {type(state).__name__}"
        )


class SubmissionStage(str, Enum):
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"


# ==================== Snapshots ==================== #
@dataclass(frozen=True)
class QuestionSnapshot:
    id: str
    number: int
    title: str
    description: str
    video_url: Optional[str] = None
    has_text_response: bool = False


@dataclass(frozen=True)
class ResponseSnapshot:
    id: str
    question_id: str
    video_url: Optional[str]
    transcription: Optional[str] = None
    analysis_status: Optional[str] = None

    @property
    def is_answered(self) -> bool:
        return self.video_url is not None


# ==================== States ==================== #
@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Invalid:
    pass


@dataclass(frozen=True)
class Ready:
    questions: tuple[QuestionSnapshot, ...]
    responses: dict[str, ResponseSnapshot] = field(default_factory=dict)
    index: int = 0

    @property
    def current_question(self) -> Optional[QuestionSnapshot]:
        if not self.questions:
            return None
        return self.questions[self.index]

    def is_answered(self, question_id: str) -> bool:
        response = self.responses.get(question_id)
        return response is not None and response.is_answered

    @property
    def answered_indices(self) -> list[int]:
        return [i for i, q in enumerate(self.questions) if self.is_answered(q.id)]

    @property
    def answered_count(self) -> int:
        return len(self.answered_indices)

    @property
    def all_answered(self) -> bool:
        """True only when there are questions and each one has a video."""
        return bool(self.questions) and self.answered_count == len(self.questions)

    def index_of(self, question_id: str) -> Optional[int]:
        for i, question in enumerate(self.questions):
            if question.id == question_id:
                return i
        return None


@dataclass(frozen=True)
class Submitting:
    ready: Ready
    question_id: str
    stage: SubmissionStage = SubmissionStage.UPLOADING


@dataclass(frozen=True)
class Completed:
    total_questions: int


@dataclass(frozen=True)
class Error:
    reason: str
    resume: Optional[Ready] = None


SessionState = Union[Loading, Invalid, Ready, Submitting, Completed, Error]


# ==================== Events ==================== #
@dataclass(frozen=True)
class AccessDenied:
    pass


@dataclass(frozen=True)
class SessionLoaded:
    questions: tuple[QuestionSnapshot, ...]
    responses: dict[str, ResponseSnapshot]
    already_completed: bool = False


@dataclass(frozen=True)
class LoadFailed:
    reason: str


@dataclass(frozen=True)
class SubmissionStarted:
    question_id: str


@dataclass(frozen=True)
class UploadSucceeded:
    response: ResponseSnapshot


@dataclass(frozen=True)
class SubmissionFinished:
    question_id: str
    transcription: Optional[str] = None


@dataclass(frozen=True)
class SubmissionFailed:
    reason: str


@dataclass(frozen=True)
class ErrorDismissed:
    pass


@dataclass(frozen=True)
class Navigated:
    delta: int


@dataclass(frozen=True)
class SessionCompleted:
    pass


@dataclass(frozen=True)
class CompletionFailed:
    reason: str


SessionEvent = Union[
    AccessDenied,
    SessionLoaded,
    LoadFailed,
    SubmissionStarted,
    UploadSucceeded,
    SubmissionFinished,
    SubmissionFailed,
    ErrorDismissed,
    Navigated,
    SessionCompleted,
    CompletionFailed,
]


# ==================== Transitions ==================== #
def resume_index(
    questions: tuple[QuestionSnapshot, ...], responses: dict[str, ResponseSnapshot]
) -> Optional[int]:
    """Index of the lowest-numbered question without a video, or None if all are answered."""
    for i, question in enumerate(questions):
        response = responses.get(question.id)
        if response is None or not response.is_answered:
            return i
    return None


def can_go_next(state: Ready) -> bool:
    current = state.current_question
    return (
        current is not None
        and state.is_answered(current.id)
        and state.index < len(state.questions) - 1
    )


def can_go_previous(state: Ready) -> bool:
    return state.index > 0


def transition(state: SessionState, event: SessionEvent) -> SessionState:
    """
    Compute the next session state.

    Raises:
        InvalidTransition: The event is not accepted in this state
    """
    if isinstance(state, Loading):
        if isinstance(event, AccessDenied):
            return Invalid()
        if isinstance(event, LoadFailed):
            return Error(reason=event.reason)
        if isinstance(event, SessionLoaded):
            if event.already_completed:
                return Completed(total_questions=len(event.questions))
            index = resume_index(event.questions, event.responses)
            if index is None:
                # All answered: sit on the last question until completion is recorded
                index = max(len(event.questions) - 1, 0)
            return Ready(
                questions=event.questions,
                responses=dict(event.responses),
                index=index,
            )

    elif isinstance(state, Ready):
        if isinstance(event, SubmissionStarted):
            if state.index_of(event.question_id) is None:
                raise InvalidTransition(state, event)
            return Submitting(ready=state, question_id=event.question_id)
        if isinstance(event, Navigated):
            if event.delta > 0 and can_go_next(state):
                return replace(state, index=state.index + 1)
            if event.delta < 0 and can_go_previous(state):
                return replace(state, index=state.index - 1)
            raise InvalidTransition(state, event)
        if isinstance(event, SessionCompleted):
            if not state.all_answered:
                raise InvalidTransition(state, event)
            return Completed(total_questions=len(state.questions))
        if isinstance(event, CompletionFailed):
            return Error(reason=event.reason, resume=state)

    elif isinstance(state, Submitting):
        if isinstance(event, UploadSucceeded) and state.stage == SubmissionStage.UPLOADING:
            responses = dict(state.ready.responses)
            responses[event.response.question_id] = event.response
            return Submitting(
                ready=replace(state.ready, responses=responses),
                question_id=state.question_id,
                stage=SubmissionStage.TRANSCRIBING,
            )
        if isinstance(event, SubmissionFinished) and state.stage == SubmissionStage.TRANSCRIBING:
            ready = state.ready
            responses = dict(ready.responses)
            stored = responses.get(event.question_id)
            if stored is not None and event.transcription is not None:
                responses[event.question_id] = replace(stored, transcription=event.transcription)
            submitted_index = ready.index_of(event.question_id)
            next_index = min(submitted_index + 1, len(ready.questions) - 1)
            return replace(ready, responses=responses, index=next_index)
        if isinstance(event, SubmissionFailed):
            # The pointer and answered set stay exactly as before the attempt
            return Error(reason=event.reason, resume=state.ready)

    elif isinstance(state, Error):
        if isinstance(event, ErrorDismissed) and state.resume is not None:
            return state.resume

    # A revoked or mismatched token ends the session from any active state
    if isinstance(event, AccessDenied) and isinstance(state, (Ready, Submitting, Error)):
        return Invalid()

    raise InvalidTransition(state, event)
