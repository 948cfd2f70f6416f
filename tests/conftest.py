import os

os.environ.setdefault("API_KEY", "test-key")

from typing import List, Optional

import pytest

from veo_studio.config import get_settings
from veo_studio.models.generation import GenerationRequest, Job, MediaArtifact, MediaReference, MediaStream
from veo_studio.services.video_job_service import JobPoller
from veo_studio.services.video_provider import VideoProvider


class FakeProvider(VideoProvider):
    """Reports ``pending_polls`` not-done states before the job finishes."""

    def __init__(self, pending_polls: int = 2, videos: int = 1, error: Optional[dict] = None):
        self.pending_polls = pending_polls
        self.videos = videos
        self.error = error
        self.submitted: List[GenerationRequest] = []
        self.refreshed: List[Job] = []
        self.fetched: List[MediaReference] = []
        self.closed_streams: List[MediaReference] = []

    def _state(self) -> Job:
        done = len(self.refreshed) >= self.pending_polls
        media = []
        if done and self.error is None:
            media = [MediaReference(uri=f"https://media.example/v{i}?alt=media") for i in range(1, self.videos + 1)]
        return Job(name="operations/fake-1", done=done, media=media, error=self.error if done else None)

    def submit(self, request: GenerationRequest) -> Job:
        self.submitted.append(request)
        return self._state()

    def refresh(self, job: Job) -> Job:
        self.refreshed.append(job)
        return self._state()

    def fetch_media(self, reference: MediaReference) -> MediaArtifact:
        self.fetched.append(reference)
        return MediaArtifact(data=reference.uri.encode(), mime_type="video/mp4", source_uri=reference.uri)

    def open_media(self, reference: MediaReference) -> MediaStream:
        artifact = self.fetch_media(reference)
        return MediaStream(
            [artifact.data],
            mime_type=artifact.mime_type,
            on_close=lambda: self.closed_streams.append(reference),
        )


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def poller(fake_provider, sleep):
    return JobPoller(fake_provider, poll_interval=10.0, sleep=sleep)


@pytest.fixture
def generation_request():
    return GenerationRequest(prompt="a paper boat drifting down a rainy street", number_of_videos=1, duration_seconds=5)
