import json
import logging
import mimetypes
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

import httpx

from veo_studio.client.renderer import PlayableVideo, ResultRenderer
from veo_studio.client.ui_state import LOADING_MESSAGES, MESSAGE_INTERVAL_SECONDS, StatusRotator, UIState
from veo_studio.models.generation import AspectRatio, GenerationRequest, MediaArtifact, ReferenceImage
from veo_studio.services.errors import (
    GenerationInProgressError,
    ProviderError,
    VideoStudioError,
    classify_error_text,
)
from veo_studio.services.video_job_service import JobPoller

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Done. The video was generated."
DEFAULT_PROXY_URL = "http://127.0.0.1:8080"


@dataclass
class GenerationForm:
    """Current values of the form inputs."""

    prompt: str = ""
    aspect_ratio: Optional[str] = None
    number_of_videos: int = 1
    duration_seconds: int = 5
    image: Optional[ReferenceImage] = None
    image_name: Optional[str] = None

    def attach_image(self, path) -> None:
        path = Path(path)
        mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
        self.image = ReferenceImage(data=path.read_bytes(), mime_type=mime_type)
        self.image_name = path.name

    def remove_image(self) -> None:
        self.image = None
        self.image_name = None

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            prompt=self.prompt,
            number_of_videos=int(self.number_of_videos),
            duration_seconds=int(self.duration_seconds),
            aspect_ratio=AspectRatio(self.aspect_ratio) if self.aspect_ratio else None,
            reference_image=self.image,
        )


class VideoBackend(Protocol):
    def generate(self, request: GenerationRequest) -> List[MediaArtifact]:
        ...


class ProxyVideoBackend:
    """Generates through the local proxy, which holds the provider credential."""

    def __init__(self, base_url: str = DEFAULT_PROXY_URL, http_client: Optional[httpx.Client] = None):
        # Generation takes minutes; the proxy answers only when the job is done.
        self._http = http_client or httpx.Client(base_url=base_url, timeout=None)

    def generate(self, request: GenerationRequest) -> List[MediaArtifact]:
        payload = {
            "prompt": request.prompt,
            "numberOfVideos": request.number_of_videos,
            "durationSeconds": request.duration_seconds,
        }
        if request.aspect_ratio:
            payload["aspectRatio"] = request.aspect_ratio.value
        if request.reference_image:
            payload["imageBytes"] = request.reference_image.to_base64()
            payload["mimeType"] = request.reference_image.mime_type

        try:
            response = self._http.post("/generate-video", json=payload)
        except httpx.HTTPError as exc:
            raise ProviderError(str(exc)) from exc

        if response.is_error:
            raise classify_error_text(_error_text(response))

        mime_type = response.headers.get("content-type", "video/mp4").split(";")[0].strip()
        return [MediaArtifact(data=response.content, mime_type=mime_type, source_uri=str(response.url))]

    def close(self) -> None:
        self._http.close()


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or "Failed to generate video."
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, str) and error:
        return error
    if isinstance(error, dict):
        return json.dumps(body)
    return "Failed to generate video."


class DirectVideoBackend:
    """Runs the submit/poll cycle in-process with the user's own credential."""

    def __init__(self, poller: JobPoller):
        self.poller = poller

    def generate(self, request: GenerationRequest) -> List[MediaArtifact]:
        return self.poller.generate(request)

    def close(self) -> None:
        self.poller.provider.close()


@dataclass
class GenerationAttempt:
    form: GenerationForm
    rotator: StatusRotator
    request: Optional[GenerationRequest] = None
    started_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


def describe_error(exc: Exception) -> str:
    if isinstance(exc, VideoStudioError):
        return exc.user_message
    return str(exc) or exc.__class__.__name__


class JobSubmitter:
    """Runs one generation at a time against a backend and drives the UI state."""

    def __init__(
        self,
        backend: VideoBackend,
        ui: Optional[UIState] = None,
        renderer: Optional[ResultRenderer] = None,
        messages: Optional[Sequence[str]] = None,
        message_interval: float = MESSAGE_INTERVAL_SECONDS,
    ):
        self.backend = backend
        self.ui = ui or UIState()
        self.renderer = renderer or ResultRenderer()
        self.messages = list(messages) if messages else list(LOADING_MESSAGES)
        self.message_interval = message_interval
        self._in_flight = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def submit(self, form: GenerationForm) -> List[PlayableVideo]:
        if not self._in_flight.acquire(blocking=False):
            raise GenerationInProgressError()
        try:
            attempt = GenerationAttempt(
                form=form,
                rotator=StatusRotator(self.ui.status, self.messages, self.message_interval),
            )
            return self._run(attempt)
        finally:
            self._in_flight.release()

    def _run(self, attempt: GenerationAttempt) -> List[PlayableVideo]:
        self.renderer.clear()
        self.ui.lock()
        attempt.rotator.start()

        try:
            # Invalid form values end the attempt like any other error.
            attempt.request = attempt.form.to_request()
            artifacts = self.backend.generate(attempt.request)
            videos = self.renderer.render(artifacts)
        except Exception as exc:
            self._finish(attempt)
            self.ui.status.show_error(f"Error: {describe_error(exc)}")
            logger.error("Video generation failed after %.0fs: %s", attempt.elapsed, exc)
            raise

        self._finish(attempt)
        self.ui.status.show(SUCCESS_MESSAGE)
        logger.info("Generated %d video(s) in %.0fs", len(videos), attempt.elapsed)
        return videos

    def _finish(self, attempt: GenerationAttempt) -> None:
        attempt.rotator.stop()
        self.ui.unlock()
