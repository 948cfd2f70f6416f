"""
Provider port. The poller depends only on this abstraction; the Gemini adapter
and the test fakes implement it.
"""

from abc import ABC, abstractmethod

from veo_studio.models.generation import GenerationRequest, Job, MediaArtifact, MediaReference, MediaStream


class VideoProvider(ABC):
    """Asynchronous video generation service: submit, check status, fetch media."""

    @abstractmethod
    def submit(self, request: GenerationRequest) -> Job:
        """Start a generation job and return its initial state."""

    @abstractmethod
    def refresh(self, job: Job) -> Job:
        """Fetch the current state of a previously submitted job."""

    @abstractmethod
    def fetch_media(self, reference: MediaReference) -> MediaArtifact:
        """Download the bytes behind one media reference of a finished job."""

    def open_media(self, reference: MediaReference) -> MediaStream:
        """Start reading one media reference; errors are raised before the first chunk."""
        return MediaStream.from_artifact(self.fetch_media(reference))

    def close(self) -> None:
        pass
