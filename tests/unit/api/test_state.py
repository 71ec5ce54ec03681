"""Tests for the pure BCQ session state machine."""

import pytest

from api.services.bcq_state import (
    AccessDenied,
    Completed,
    CompletionFailed,
    Error,
    ErrorDismissed,
    Invalid,
    InvalidTransition,
    Loading,
    LoadFailed,
    Navigated,
    QuestionSnapshot,
    Ready,
    ResponseSnapshot,
    SessionCompleted,
    SessionLoaded,
    SubmissionFailed,
    SubmissionFinished,
    SubmissionStage,
    SubmissionStarted,
    Submitting,
    UploadSucceeded,
    can_go_next,
    can_go_previous,
    transition,
)

QUESTIONS = tuple(
    QuestionSnapshot(id=f"q{n}", number=n, title=f"Question {n}", description="")
    for n in (1, 2, 3)
)


def answered(*question_ids: str) -> dict:
    return {
        qid: ResponseSnapshot(id=f"r-{qid}", question_id=qid, video_url=f"https://videos/{qid}.webm")
        for qid in question_ids
    }


def loaded(responses=None, already_completed=False, questions=QUESTIONS):
    return transition(
        Loading(),
        SessionLoaded(questions=questions, responses=responses or {}, already_completed=already_completed),
    )


class TestLoading:

    def test_resumes_at_first_unanswered(self):
        state = loaded(answered("q1", "q3"))

        assert isinstance(state, Ready)
        assert state.index == 1
        assert state.answered_count == 2

    def test_response_without_video_is_unanswered(self):
        responses = {"q1": ResponseSnapshot(id="r1", question_id="q1", video_url=None)}
        assert loaded(responses).index == 0

    def test_all_answered_sits_on_last(self):
        state = loaded(answered("q1", "q2", "q3"))
        assert state.index == 2
        assert state.all_answered

    def test_already_completed(self):
        assert loaded(already_completed=True) == Completed(total_questions=3)

    def test_access_denied_and_load_failure(self):
        assert transition(Loading(), AccessDenied()) == Invalid()
        error = transition(Loading(), LoadFailed(reason="db down"))
        assert error == Error(reason="db down", resume=None)

    def test_zero_questions_never_complete(self):
        state = loaded(questions=())

        assert state.current_question is None
        assert not state.all_answered
        with pytest.raises(InvalidTransition):
            transition(state, SessionCompleted())


class TestNavigation:

    def test_next_requires_current_answered(self):
        state = loaded()
        assert not can_go_next(state)
        with pytest.raises(InvalidTransition):
            transition(state, Navigated(delta=1))

    def test_previous_is_always_allowed_above_first(self):
        state = loaded(answered("q1"))
        assert can_go_previous(state)
        assert transition(state, Navigated(delta=-1)).index == 0

        first = transition(state, Navigated(delta=-1))
        assert not can_go_previous(first)
        with pytest.raises(InvalidTransition):
            transition(first, Navigated(delta=-1))

    def test_next_stops_at_last(self):
        state = loaded(answered("q1", "q2", "q3"))
        assert not can_go_next(state)


class TestSubmission:

    def test_full_submission_advances(self):
        ready = loaded()
        submitting = transition(ready, SubmissionStarted(question_id="q1"))
        assert submitting == Submitting(ready=ready, question_id="q1")

        response = ResponseSnapshot(id="r1", question_id="q1", video_url="https://videos/q1.webm")
        transcribing = transition(submitting, UploadSucceeded(response=response))
        assert transcribing.stage == SubmissionStage.TRANSCRIBING

        finished = transition(transcribing, SubmissionFinished(question_id="q1", transcription="Hello"))
        assert isinstance(finished, Ready)
        assert finished.index == 1
        assert finished.responses["q1"].transcription == "Hello"

    def test_resubmitting_last_question_stays_on_last(self):
        ready = loaded(answered("q1", "q2"))
        state = transition(ready, SubmissionStarted(question_id="q3"))
        response = ResponseSnapshot(id="r3", question_id="q3", video_url="https://videos/q3.webm")
        state = transition(state, UploadSucceeded(response=response))
        state = transition(state, SubmissionFinished(question_id="q3"))

        assert state.index == 2
        assert state.all_answered

    def test_failure_preserves_pre_submission_state(self):
        ready = loaded(answered("q1"))
        submitting = transition(ready, SubmissionStarted(question_id="q2"))

        error = transition(submitting, SubmissionFailed(reason="Failed to upload video. Please try again."))
        assert error.resume == ready
        assert transition(error, ErrorDismissed()) == ready

    def test_unknown_question(self):
        with pytest.raises(InvalidTransition):
            transition(loaded(), SubmissionStarted(question_id="nope"))

    def test_finish_before_upload_is_rejected(self):
        submitting = transition(loaded(), SubmissionStarted(question_id="q1"))
        with pytest.raises(InvalidTransition):
            transition(submitting, SubmissionFinished(question_id="q1"))

    def test_no_navigation_while_submitting(self):
        submitting = transition(loaded(answered("q1")), SubmissionStarted(question_id="q2"))
        with pytest.raises(InvalidTransition):
            transition(submitting, Navigated(delta=-1))


class TestCompletion:

    def test_completion_requires_every_answer(self):
        with pytest.raises(InvalidTransition):
            transition(loaded(answered("q1", "q2")), SessionCompleted())

        done = transition(loaded(answered("q1", "q2", "q3")), SessionCompleted())
        assert done == Completed(total_questions=3)

    def test_completion_failure_is_recoverable(self):
        ready = loaded(answered("q1", "q2", "q3"))
        error = transition(ready, CompletionFailed(reason="write failed"))

        assert transition(error, ErrorDismissed()) == ready

    def test_completed_is_terminal(self):
        done = Completed(total_questions=3)
        for event in (Navigated(delta=-1), SubmissionStarted(question_id="q1"), ErrorDismissed(), AccessDenied()):
            with pytest.raises(InvalidTransition):
                transition(done, event)

    def test_revoked_access_from_active_states(self):
        ready = loaded()
        assert transition(ready, AccessDenied()) == Invalid()
        submitting = transition(ready, SubmissionStarted(question_id="q1"))
        assert transition(submitting, AccessDenied()) == Invalid()
