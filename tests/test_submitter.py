import json

import httpx
import pytest

from veo_studio.client.renderer import ResultRenderer
from veo_studio.client.submitter import (
    SUCCESS_MESSAGE,
    DirectVideoBackend,
    GenerationForm,
    JobSubmitter,
    ProxyVideoBackend,
)
from veo_studio.client.ui_state import LOADING_MESSAGES, UIState
from veo_studio.models.generation import AspectRatio, MediaArtifact
from veo_studio.services.errors import (
    QUOTA_EXCEEDED_MESSAGE,
    EmptyResultError,
    GenerationInProgressError,
    ProviderError,
    QuotaExceededError,
)
from veo_studio.services.video_job_service import JobPoller

from conftest import FakeProvider


class CountingUIState(UIState):
    def __init__(self):
        super().__init__()
        self.lock_calls = 0
        self.unlock_calls = 0

    def lock(self):
        self.lock_calls += 1
        super().lock()

    def unlock(self):
        self.unlock_calls += 1
        super().unlock()


class StubBackend:
    def __init__(self, ui, artifacts=None, error=None):
        self.ui = ui
        self.artifacts = artifacts or [MediaArtifact(data=b"video-bytes")]
        self.error = error
        self.requests = []
        self.locked_during_call = None
        self.status_during_call = None

    def generate(self, request):
        self.requests.append(request)
        self.locked_during_call = self.ui.locked
        self.status_during_call = self.ui.status.text
        if self.error:
            raise self.error
        return self.artifacts


@pytest.fixture
def ui():
    return CountingUIState()


@pytest.fixture
def renderer(tmp_path):
    with ResultRenderer(scratch_dir=tmp_path / "scratch") as renderer:
        yield renderer


@pytest.fixture
def form():
    return GenerationForm(prompt="a red kite over the dunes", aspect_ratio="16:9", number_of_videos=1, duration_seconds=5)


def test_success_locks_then_unlocks_once(ui, renderer, form):
    backend = StubBackend(ui)
    videos = JobSubmitter(backend, ui=ui, renderer=renderer, message_interval=60).submit(form)

    assert backend.locked_during_call is True
    assert backend.status_during_call == LOADING_MESSAGES[0]
    assert ui.lock_calls == 1
    assert ui.unlock_calls == 1
    assert not any(control.disabled for control in ui.controls.values())
    assert ui.status.text == SUCCESS_MESSAGE
    assert len(videos) == 1


def test_failure_unlocks_once_and_shows_error(ui, renderer, form):
    backend = StubBackend(ui, error=ProviderError("socket hang up"))
    submitter = JobSubmitter(backend, ui=ui, renderer=renderer, message_interval=60)

    with pytest.raises(ProviderError):
        submitter.submit(form)

    assert backend.locked_during_call is True
    assert ui.unlock_calls == 1
    assert not ui.locked
    assert ui.status.is_error
    assert ui.status.text == "Error: socket hang up"


def test_quota_error_shows_friendly_message(ui, renderer, form):
    backend = StubBackend(ui, error=QuotaExceededError("Quota exceeded", status="RESOURCE_EXHAUSTED"))

    with pytest.raises(QuotaExceededError):
        JobSubmitter(backend, ui=ui, renderer=renderer, message_interval=60).submit(form)

    assert ui.status.text == f"Error: {QUOTA_EXCEEDED_MESSAGE}"


def test_empty_result_renders_nothing(ui, renderer, form):
    provider = FakeProvider(pending_polls=1, videos=0)
    backend = DirectVideoBackend(JobPoller(provider, sleep=lambda seconds: None))

    with pytest.raises(EmptyResultError):
        JobSubmitter(backend, ui=ui, renderer=renderer, message_interval=60).submit(form)

    assert renderer.items == []
    assert ui.status.text == "Error: No videos were generated."


def test_direct_backend_renders_every_video(ui, renderer, form):
    provider = FakeProvider(pending_polls=2, videos=2)
    backend = DirectVideoBackend(JobPoller(provider, sleep=lambda seconds: None))
    form.number_of_videos = 2

    videos = JobSubmitter(backend, ui=ui, renderer=renderer, message_interval=60).submit(form)

    assert len(provider.submitted) == 1
    assert [video.artifact.source_uri for video in videos] == [
        "https://media.example/v1?alt=media",
        "https://media.example/v2?alt=media",
    ]


def test_new_submission_is_rejected_while_one_is_running(ui, renderer, form):
    rejected = []

    class ReentrantBackend(StubBackend):
        def generate(self, request):
            with pytest.raises(GenerationInProgressError):
                submitter.submit(form)
            rejected.append(True)
            return super().generate(request)

    submitter = JobSubmitter(ReentrantBackend(ui), ui=ui, renderer=renderer, message_interval=60)
    submitter.submit(form)

    assert rejected == [True]
    assert not submitter.busy


def test_previous_results_are_cleared_before_starting(ui, renderer, form):
    submitter = JobSubmitter(StubBackend(ui), ui=ui, renderer=renderer, message_interval=60)
    first = submitter.submit(form)[0]

    seen = {}

    class CheckingBackend(StubBackend):
        def generate(self, request):
            seen["items"] = list(renderer.items)
            seen["first_exists"] = first.path.exists()
            return super().generate(request)

    submitter.backend = CheckingBackend(ui)
    submitter.submit(form)

    assert seen == {"items": [], "first_exists": False}


def test_form_builds_a_fresh_request(tmp_path):
    image = tmp_path / "ref.jpg"
    image.write_bytes(b"jpeg-data")
    form = GenerationForm(prompt="snow", aspect_ratio="9:16", number_of_videos="2", duration_seconds="6")
    form.attach_image(image)

    request = form.to_request()

    assert request.aspect_ratio is AspectRatio.PORTRAIT
    assert request.number_of_videos == 2
    assert request.duration_seconds == 6
    assert request.reference_image.data == b"jpeg-data"
    assert request.reference_image.mime_type == "image/jpeg"
    assert form.image_name == "ref.jpg"

    form.remove_image()
    assert form.to_request().reference_image is None


def _proxy(handler):
    return ProxyVideoBackend(http_client=httpx.Client(base_url="http://proxy.test", transport=httpx.MockTransport(handler)))


def test_proxy_backend_posts_browser_payload(form, tmp_path):
    captured = {}

    def handler(request):
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, content=b"mp4", headers={"content-type": "video/mp4"})

    image = tmp_path / "ref.png"
    image.write_bytes(b"png")
    form.attach_image(image)

    artifacts = _proxy(handler).generate(form.to_request())

    assert captured["path"] == "/generate-video"
    assert captured["body"] == {
        "prompt": "a red kite over the dunes",
        "numberOfVideos": 1,
        "durationSeconds": 5,
        "aspectRatio": "16:9",
        "imageBytes": "cG5n",
        "mimeType": "image/png",
    }
    assert [(a.data, a.mime_type) for a in artifacts] == [(b"mp4", "video/mp4")]


def test_proxy_backend_recognises_quota_body(form):
    body = {"error": json.dumps({"error": {"status": "RESOURCE_EXHAUSTED", "message": "quota"}})}

    with pytest.raises(QuotaExceededError):
        _proxy(lambda request: httpx.Response(500, json=body)).generate(form.to_request())


def test_proxy_backend_passes_plain_error_through(form):
    with pytest.raises(ProviderError) as excinfo:
        _proxy(lambda request: httpx.Response(500, json={"error": "Failed to fetch video: Forbidden"})).generate(
            form.to_request()
        )
    assert excinfo.value.user_message == "Failed to fetch video: Forbidden"


def test_proxy_backend_non_json_error_body_is_raw(form):
    with pytest.raises(ProviderError) as excinfo:
        _proxy(lambda request: httpx.Response(502, text="Bad Gateway")).generate(form.to_request())
    assert excinfo.value.user_message == "Bad Gateway"


def test_proxy_backend_wraps_transport_errors(form):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderError, match="connection refused"):
        _proxy(handler).generate(form.to_request())


def test_invalid_form_value_is_reported_on_status_line(ui, renderer):
    backend = StubBackend(ui)
    form = GenerationForm(prompt="a red kite over the dunes", aspect_ratio="4:3")

    with pytest.raises(ValueError):
        JobSubmitter(backend, ui=ui, renderer=renderer, message_interval=60).submit(form)

    assert backend.requests == []
    assert ui.lock_calls == 1
    assert ui.unlock_calls == 1
    assert not ui.locked
    assert ui.status.is_error
    assert ui.status.text == "Error: '4:3' is not a valid AspectRatio"


def test_messages_default_is_not_shared_between_submitters(ui, renderer):
    first = JobSubmitter(StubBackend(ui), ui=ui, renderer=renderer)
    second = JobSubmitter(StubBackend(ui), ui=ui, renderer=renderer)

    first.messages.append("Still rendering...")

    assert second.messages == LOADING_MESSAGES
    assert "Still rendering..." not in LOADING_MESSAGES


def test_direct_backend_close_releases_provider():
    provider = FakeProvider()
    closed = []
    provider.close = lambda: closed.append(True)

    DirectVideoBackend(JobPoller(provider)).close()

    assert closed == [True]
