"""
Session controller for one candidate's BCQ sitting.

Owns the session state (see ``bcq_state``) and performs the side effects
behind each transition: token checks, video upload, response upsert,
transcription, analysis dispatch and the completion write.
"""

from datetime import datetime
from typing import Any, Callable, Optional
import asyncio
import logging

from api.services.bcq_access import AccessGrant, validate_access, verify_access
from api.services.bcq_state import (
    AccessDenied,
    Completed,
    CompletionFailed,
    ErrorDismissed,
    InvalidTransition,
    Loading,
    LoadFailed,
    Navigated,
    QuestionSnapshot,
    Ready,
    ResponseSnapshot,
    SessionCompleted,
    SessionEvent,
    SessionLoaded,
    SessionState,
    SubmissionFailed,
    SubmissionFinished,
    SubmissionStarted,
    UploadSucceeded,
    transition,
)
from api.services.business_cases import BCQRepository
from api.services.transcription import TranscriptionService
from core.capture.recorder import Recording
from core.config import settings
from core.exceptions import (
    InvalidAccessError,
    InvalidRecordingError,
    QuestionNotFoundError,
    RecordingTooLargeError,
    SessionStateError,
    UploadError,
)
from core.storage.s3 import S3Storage, extension_for, video_key
from core.utils.background import spawn
from core.utils.datetime import is_delayed, minutes_between, now as utc_now

logger = logging.getLogger(__name__)

UPLOAD_FAILED_REASON = "Failed to upload video. Please try again."
LOAD_FAILED_REASON = "Could not load the business case questions. Please refresh the page."
COMPLETION_FAILED_REASON = "Your answers are saved but the submission could not be finalized. Please try again."


def question_snapshot(question) -> QuestionSnapshot:
    return QuestionSnapshot(
        id=question.id,
        number=question.question_number,
        title=question.question_title,
        description=question.question_description,
        video_url=question.video_url,
        has_text_response=bool(question.has_text_response),
    )


def response_snapshot(response) -> ResponseSnapshot:
    status = response.content_analysis_status
    return ResponseSnapshot(
        id=response.id,
        question_id=response.business_case_id,
        video_url=response.video_url,
        transcription=response.transcription,
        analysis_status=getattr(status, "value", status),
    )


class BCQSessionController:
    """
    Drives one candidate session through the BCQ state machine.

    The access grant is validated once in ``open()`` and cached; every write
    re-checks the token against the database regardless.
    """

    def __init__(
        self,
        repo: BCQRepository,
        storage: S3Storage,
        transcriber: Optional[TranscriptionService],
        application_id: str,
        token: str,
        job_id: Optional[str] = None,
        dispatch_analysis: Optional[Callable[[str], Any]] = None,
        clock: Callable[[], datetime] = utc_now,
        upload_attempts: int = 2,
        upload_retry_delay: float = 1.0,
        max_video_bytes: Optional[int] = None,
        delay_threshold_hours: Optional[int] = None,
    ):
        self.repo = repo
        self.storage = storage
        self.transcriber = transcriber
        self.application_id = application_id
        self.token = token
        self.job_id = job_id
        self.dispatch_analysis = dispatch_analysis
        self.clock = clock
        self.upload_attempts = upload_attempts
        self.upload_retry_delay = upload_retry_delay
        self.max_video_bytes = (
            max_video_bytes if max_video_bytes is not None else settings.video_upload_max_bytes
        )
        self.delay_threshold_hours = (
            delay_threshold_hours
            if delay_threshold_hours is not None
            else settings.bcq_delay_threshold_hours
        )

        self.grant: Optional[AccessGrant] = None
        self._state: SessionState = Loading()

    @property
    def state(self) -> SessionState:
        return self._state

    def _apply(self, event: SessionEvent) -> SessionState:
        previous = self._state
        self._state = transition(previous, event)
        logger.debug(
            f"BCQ session {self.application_id}: {type(previous).__name__} "
            f"--{type(event).__name__}--> {type(self._state).__name__}"
        )
        return self._state

    def _require_ready(self) -> Ready:
        if not isinstance(self._state, Ready):
            raise SessionStateError(
                f"Action not available while session is {type(self._state).__name__.lower()}"
            )
        return self._state

    # ==================== Entry ==================== #
    async def open(self) -> SessionState:
        """Validate the link, load questions and responses, resume where the candidate left off."""
        if not isinstance(self._state, Loading):
            return self._state

        try:
            self.grant = await validate_access(
                self.repo,
                self.application_id,
                self.token,
                now=self.clock(),
                job_id=self.job_id,
            )
        except InvalidAccessError:
            return self._apply(AccessDenied())

        try:
            questions = await self.repo.list_questions(self.grant.job_id)
            responses = await self.repo.list_responses(self.application_id)
        except Exception:
            logger.exception(f"Failed to load BCQ session for application {self.application_id}")
            return self._apply(LoadFailed(reason=LOAD_FAILED_REASON))

        snapshots = {r.business_case_id: response_snapshot(r) for r in responses}
        state = self._apply(
            SessionLoaded(
                questions=tuple(question_snapshot(q) for q in questions),
                responses=snapshots,
                already_completed=self.grant.completed,
            )
        )

        if isinstance(state, Ready) and state.all_answered:
            # Every answer was stored in an earlier visit but completion was never recorded
            return await self._complete(state)
        return state

    # ==================== Submission ==================== #
    async def submit_response(self, question_id: str, recording: Recording) -> SessionState:
        """
        Upload, persist and transcribe one answer, then advance or complete.

        Upload and persistence failures move the session to ``Error`` with the
        pre-submission state kept for ``dismiss_error()``. Transcription
        failures are logged and never block the submission.

        Raises:
            SessionStateError: Session is not ready for a submission
            QuestionNotFoundError: The question is not part of this job
            InvalidRecordingError: Empty recording
            RecordingTooLargeError: Recording exceeds the upload limit
        """
        ready = self._require_ready()
        if ready.index_of(question_id) is None:
            raise QuestionNotFoundError()

        try:
            await verify_access(self.repo, self.application_id, self.token, job_id=self.job_id)
        except InvalidAccessError:
            self._apply(AccessDenied())
            raise

        self._validate_recording(recording)
        self._apply(SubmissionStarted(question_id=question_id))

        try:
            submitted_at = self.clock()
            key = video_key(
                self.application_id, question_id, extension_for(recording.video_content_type)
            )
            video_url = await self._upload(recording, key)
            response = await self.repo.upsert_response(
                application_id=self.application_id,
                business_case_id=question_id,
                video_url=video_url,
                video_path=key,
                completed_at=submitted_at,
            )
            await self.repo.mark_started(self.application_id, submitted_at)
        except Exception as e:
            logger.error(
                f"BCQ submission failed for application {self.application_id}, "
                f"question {question_id}: {type(e).__name__}: {e}"
            )
            reason = e.message if isinstance(e, UploadError) else UPLOAD_FAILED_REASON
            return self._apply(SubmissionFailed(reason=reason))

        self._apply(UploadSucceeded(response=response_snapshot(response)))

        transcription = await self._transcribe(response.id, recording)
        state = self._apply(
            SubmissionFinished(question_id=question_id, transcription=transcription)
        )

        if transcription:
            self._dispatch_analysis(response.id)

        if state.all_answered:
            return await self._complete(state)
        return state

    def _validate_recording(self, recording: Recording) -> None:
        size = len(recording.video or b"")
        if size == 0:
            raise InvalidRecordingError()
        if size > self.max_video_bytes:
            raise RecordingTooLargeError(
                f"Video is too large ({size / (1024 * 1024):.1f} MB). "
                f"Maximum size is {self.max_video_bytes / (1024 * 1024):.0f} MB."
            )

    async def _upload(self, recording: Recording, key: str) -> str:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.upload_attempts + 1):
            try:
                return await self.storage.upload(
                    recording.video,
                    key,
                    content_type=recording.video_content_type,
                    metadata={"application-id": self.application_id},
                )
            except Exception as e:
                last_error = e
                logger.warning(f"Video upload attempt {attempt}/{self.upload_attempts} failed: {e}")
                if attempt < self.upload_attempts:
                    await asyncio.sleep(self.upload_retry_delay)

        raise UploadError() from last_error

    async def _transcribe(self, response_id: str, recording: Recording) -> Optional[str]:
        if self.transcriber is None or not recording.has_audio:
            logger.info(f"No audio track for response {response_id}; transcription deferred")
            return None

        handle = spawn(
            f"transcribe:{response_id}",
            self.transcriber.transcribe_bytes(
                recording.audio,
                recording.audio_content_type,
                recording.language,
                response_id=response_id,
            ),
        )
        outcome = await handle.outcome()
        if not outcome.ok:
            logger.warning(
                f"Transcription unavailable for response {response_id}; the video answer is kept"
            )
            return None
        return outcome.value

    def _dispatch_analysis(self, response_id: str) -> None:
        if self.dispatch_analysis is None:
            return
        try:
            self.dispatch_analysis(response_id)
            logger.info(f"Queued analysis for response {response_id}")
        except Exception:
            logger.exception(f"Failed to queue analysis for response {response_id}")

    # ==================== Completion ==================== #
    async def complete(self) -> SessionState:
        """Retry the completion write, e.g. after a dismissed completion error."""
        ready = self._require_ready()
        if not ready.all_answered:
            raise SessionStateError("All questions must be answered before submitting")
        return await self._complete(ready)

    async def _complete(self, ready: Ready) -> SessionState:
        completed_at = self.clock()
        opened_at = self.grant.link_opened_at if self.grant else None
        response_time = minutes_between(opened_at, completed_at) if opened_at else None
        delayed = (
            is_delayed(opened_at, completed_at, self.delay_threshold_hours) if opened_at else False
        )

        try:
            await self.repo.mark_completed(
                self.application_id, completed_at, response_time, delayed
            )
        except Exception:
            logger.exception(f"Failed to record BCQ completion for {self.application_id}")
            return self._apply(CompletionFailed(reason=COMPLETION_FAILED_REASON))

        logger.info(
            f"BCQ completed for application {self.application_id}: "
            f"{len(ready.questions)} answers, {response_time} minutes, delayed={delayed}"
        )
        return self._apply(SessionCompleted())

    # ==================== Navigation ==================== #
    def go_next(self) -> Ready:
        return self._navigate(1)

    def go_previous(self) -> Ready:
        return self._navigate(-1)

    def _navigate(self, delta: int) -> Ready:
        self._require_ready()
        try:
            return self._apply(Navigated(delta=delta))
        except InvalidTransition:
            raise SessionStateError(
                "Cannot move to the next question yet" if delta > 0 else "Already at the first question"
            )

    def seek(self, question_id: str) -> Ready:
        """Move the pointer to a question using only legal navigation steps."""
        ready = self._require_ready()
        target = ready.index_of(question_id)
        if target is None:
            raise QuestionNotFoundError()
        while self._state.index > target:
            self.go_previous()
        while self._state.index < target:
            self.go_next()
        return self._state

    def dismiss_error(self) -> SessionState:
        try:
            return self._apply(ErrorDismissed())
        except InvalidTransition:
            raise SessionStateError("There is no error to dismiss")

    # ==================== Views ==================== #
    @property
    def is_completed(self) -> bool:
        return isinstance(self._state, Completed)
