"""
Candidate-facing business case endpoints.

Candidates have no login: every request carries the application id and the
per-application access token from the invitation link.
"""

from typing import Any, Callable, Optional
import json
import logging
import time

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Path,
    Query,
    Response,
    UploadFile,
    WebSocket,
    status,
)

from api.dependencies import (
    Recruiter,
    get_analysis_dispatcher,
    get_optional_recruiter,
    get_repository,
    get_storage,
    get_transcription_service,
)
from api.schemas.business_case import (
    NavigateRequest,
    QuestionOut,
    SessionOut,
    VideoUrlRequest,
    VideoUrlResponse,
)
from api.services.bcq_access import verify_access
from api.services.bcq_session import BCQSessionController
from api.services.bcq_state import (
    Completed,
    Error,
    Invalid,
    Ready,
    Submitting,
    can_go_next,
    can_go_previous,
)
from api.services.business_cases import BCQRepository
from api.services.transcription import TranscriptionService
from core.capture import (
    SUPPORTED_LANGUAGES,
    MediaFrame,
    QueueCaptureDevice,
    Recording,
    RecorderStatus,
    ResponseRecorder,
)
from core.config import settings
from core.exceptions import (
    BCQError,
    InvalidAccessError,
    InvalidRecordingError,
    SessionStateError,
)
from core.storage.s3 import S3Storage

logger = logging.getLogger(__name__)

router = APIRouter()

# WebSocket close codes for terminal session states
WS_CLOSE_INVALID = 4404
WS_CLOSE_UNAVAILABLE = 4409


def session_view(
    controller: BCQSessionController, submitted_question_id: Optional[str] = None
) -> SessionOut:
    """Serialize the controller's current state for the candidate page."""
    state = controller.state
    view: dict[str, Any] = {"application_id": controller.application_id}

    if isinstance(state, Invalid):
        return SessionOut(status="invalid", error=InvalidAccessError.default_message, **view)
    if isinstance(state, Completed):
        return SessionOut(
            status="completed",
            total_questions=state.total_questions,
            answered_count=state.total_questions,
            **view,
        )

    ready: Optional[Ready] = None
    if isinstance(state, Ready):
        ready = state
        view["status"] = "ready"
    elif isinstance(state, Submitting):
        ready = state.ready
        view.update(status="submitting", stage=state.stage.value)
    elif isinstance(state, Error):
        ready = state.resume
        view.update(status="error", error=state.reason)
    else:
        view["status"] = "loading"

    if ready is not None:
        current = ready.current_question
        view.update(
            questions=[
                QuestionOut(
                    id=q.id,
                    question_number=q.number,
                    question_title=q.title,
                    question_description=q.description,
                    video_url=q.video_url,
                    has_text_response=q.has_text_response,
                    answered=ready.is_answered(q.id),
                )
                for q in ready.questions
            ],
            current_index=ready.index if current else None,
            current_question_id=current.id if current else None,
            answered_count=ready.answered_count,
            total_questions=len(ready.questions),
            can_go_next=isinstance(state, Ready) and can_go_next(ready),
            can_go_previous=isinstance(state, Ready) and can_go_previous(ready),
        )
        if submitted_question_id and submitted_question_id in ready.responses:
            view["transcription"] = ready.responses[submitted_question_id].transcription

    return SessionOut(**view)


def build_controller(
    repo: BCQRepository,
    storage: S3Storage,
    job_id: str,
    application_id: str,
    token: str,
    transcriber: Optional[TranscriptionService] = None,
    dispatch_analysis: Optional[Callable[[str], Any]] = None,
) -> BCQSessionController:
    return BCQSessionController(
        repo=repo,
        storage=storage,
        transcriber=transcriber,
        application_id=application_id,
        token=token,
        job_id=job_id,
        dispatch_analysis=dispatch_analysis,
    )


async def open_ready_session(controller: BCQSessionController) -> Ready:
    """Open the session and require it to accept submissions or navigation."""
    state = await controller.open()
    if isinstance(state, Invalid):
        raise InvalidAccessError()
    if isinstance(state, Completed):
        raise SessionStateError("This business case has already been submitted")
    if isinstance(state, Error):
        raise SessionStateError(state.reason)
    return state


@router.get(
    "/{job_id}",
    response_model=SessionOut,
    summary="Open BCQ Session",
    description="Validate the invitation link and resume at the first unanswered question.",
)
async def open_session(
    job_id: str = Path(..., description="Job ID from the invitation link"),
    application_id: str = Query(..., alias="applicationId"),
    token: str = Query(..., min_length=1),
    repo: BCQRepository = Depends(get_repository),
    storage: S3Storage = Depends(get_storage),
):
    controller = build_controller(repo, storage, job_id, application_id, token)
    state = await controller.open()
    if isinstance(state, Invalid):
        raise InvalidAccessError()
    return session_view(controller)


@router.post(
    "/{job_id}/responses/{question_id}",
    response_model=SessionOut,
    summary="Submit BCQ Answer",
    description="Upload the answer video (and optional audio track) for one question.",
)
async def submit_response(
    response: Response,
    job_id: str = Path(...),
    question_id: str = Path(...),
    application_id: str = Form(..., alias="applicationId"),
    token: str = Form(..., min_length=1),
    language: str = Form("en"),
    video: UploadFile = File(..., description="Combined video+audio recording"),
    audio: Optional[UploadFile] = File(None, description="Audio-only recording for transcription"),
    repo: BCQRepository = Depends(get_repository),
    storage: S3Storage = Depends(get_storage),
    transcriber: TranscriptionService = Depends(get_transcription_service),
    dispatch_analysis: Callable[[str], Any] = Depends(get_analysis_dispatcher),
):
    if language not in SUPPORTED_LANGUAGES:
        raise InvalidRecordingError(f"Unsupported language: {language}")

    controller = build_controller(
        repo, storage, job_id, application_id, token, transcriber, dispatch_analysis
    )
    await open_ready_session(controller)

    recording = Recording(
        video=await video.read(),
        video_content_type=video.content_type or "video/webm",
        audio=await audio.read() if audio is not None else None,
        audio_content_type=(audio.content_type if audio is not None else None) or "audio/webm",
        language=language,
    )
    state = await controller.submit_response(question_id, recording)
    if isinstance(state, Error):
        response.status_code = status.HTTP_502_BAD_GATEWAY
    return session_view(controller, submitted_question_id=question_id)


@router.post(
    "/{job_id}/navigate",
    response_model=SessionOut,
    summary="Navigate Between Questions",
)
async def navigate(
    payload: NavigateRequest,
    job_id: str = Path(...),
    repo: BCQRepository = Depends(get_repository),
    storage: S3Storage = Depends(get_storage),
):
    controller = build_controller(repo, storage, job_id, payload.application_id, payload.token)
    await open_ready_session(controller)

    if payload.current_question_id:
        controller.seek(payload.current_question_id)
    if payload.direction == "next":
        controller.go_next()
    else:
        controller.go_previous()
    return session_view(controller)


@router.post(
    "/video-url",
    response_model=VideoUrlResponse,
    summary="Get Signed Video URL",
    description="Signed playback URL for a stored answer video. Candidates may only access their own videos.",
)
async def get_video_url(
    payload: VideoUrlRequest,
    repo: BCQRepository = Depends(get_repository),
    storage: S3Storage = Depends(get_storage),
    recruiter: Optional[Recruiter] = Depends(get_optional_recruiter),
):
    video_path = payload.video_path.lstrip("/")
    if ".." in video_path.split("/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid video path")

    authorized = recruiter is not None
    if not authorized and payload.application_id and payload.bcq_access_token:
        try:
            await verify_access(repo, payload.application_id, payload.bcq_access_token)
            authorized = video_path.startswith(f"{payload.application_id}/")
        except InvalidAccessError:
            authorized = False

    if not authorized:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    ttl = settings.signed_url_ttl_seconds
    signed_url = await storage.get_presigned_url(video_path, expiration=ttl)
    logger.info(f"Signed URL generated for {video_path}, expires in {ttl} seconds")
    return VideoUrlResponse(
        signed_url=signed_url,
        expires_in=ttl,
        expires_at=int(time.time() * 1000) + ttl * 1000,
    )


# ==================== Live capture ==================== #
async def _send_error(websocket: WebSocket, error: BCQError) -> None:
    await websocket.send_json({"type": "error", "code": error.error_code, "message": error.message})


async def _send_recorder(websocket: WebSocket, recorder: ResponseRecorder) -> None:
    await websocket.send_json(
        {
            "type": "recorder",
            "status": recorder.status.value,
            "language": recorder.language,
            "error": recorder.last_error,
        }
    )


@router.websocket("/{job_id}/capture/{question_id}")
async def capture(
    websocket: WebSocket,
    job_id: str,
    question_id: str,
    application_id: str = Query(..., alias="applicationId"),
    token: str = Query(...),
    repo: BCQRepository = Depends(get_repository),
    storage: S3Storage = Depends(get_storage),
    transcriber: TranscriptionService = Depends(get_transcription_service),
    dispatch_analysis: Callable[[str], Any] = Depends(get_analysis_dispatcher),
):
    """
    Record an answer over a WebSocket.

    Text messages are JSON commands: ``acquire``, ``device_error`` (with
    ``reason``), ``language`` (with ``language``), ``start``, ``stop``,
    ``discard`` and ``accept``. Binary messages are media chunks prefixed
    with one byte: ``v`` for the combined camera track, ``a`` for the
    microphone track.
    """
    await websocket.accept()

    controller = build_controller(
        repo, storage, job_id, application_id, token, transcriber, dispatch_analysis
    )
    state = await controller.open()
    if not isinstance(state, Ready) or state.index_of(question_id) is None:
        view = session_view(controller).model_dump(mode="json", by_alias=True)
        await websocket.send_json({"type": "session", "session": view})
        code = WS_CLOSE_INVALID if isinstance(state, (Invalid, Ready)) else WS_CLOSE_UNAVAILABLE
        await websocket.close(code=code)
        return

    device = QueueCaptureDevice()
    recorder = ResponseRecorder(device)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            if message.get("bytes") is not None:
                data = message["bytes"]
                kind, payload = data[:1], data[1:]
                frame = MediaFrame(
                    timestamp=time.monotonic(),
                    video=payload if kind == b"v" else None,
                    audio=payload if kind == b"a" else None,
                )
                try:
                    await device.push(frame)
                except BCQError as e:
                    await _send_error(websocket, e)
                continue

            try:
                command = json.loads(message.get("text") or "{}")
            except ValueError:
                await _send_error(websocket, BCQError("Malformed command"))
                continue

            action = command.get("action")
            try:
                if action == "acquire":
                    device.mark_available()
                    await recorder.acquire()
                elif action == "device_error":
                    device.mark_unavailable(
                        command.get("reason") or "Camera or microphone is unavailable"
                    )
                    await recorder.acquire()
                elif action == "language":
                    try:
                        recorder.language = command.get("language", "")
                    except ValueError as e:
                        raise InvalidRecordingError(str(e))
                elif action == "start":
                    await recorder.start()
                elif action == "stop":
                    await recorder.stop()
                elif action == "discard":
                    device.mark_available()
                    await recorder.discard_and_rerecord()
                elif action == "accept":
                    recording = recorder.accept()
                    await recorder.release()
                    await controller.submit_response(question_id, recording)
                    await websocket.send_json(
                        {
                            "type": "session",
                            "session": session_view(controller, question_id).model_dump(
                                mode="json", by_alias=True
                            ),
                        }
                    )
                    await websocket.close()
                    return
                else:
                    raise BCQError(f"Unknown action: {action}")
            except BCQError as e:
                await _send_error(websocket, e)
                if isinstance(controller.state, Invalid):
                    await websocket.close(code=WS_CLOSE_INVALID)
                    return
                continue

            await _send_recorder(websocket, recorder)
    finally:
        device.close()
        if recorder.status != RecorderStatus.IDLE:
            await recorder.release()
