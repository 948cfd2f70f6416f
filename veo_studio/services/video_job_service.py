import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from veo_studio.models.generation import GenerationRequest, Job, MediaArtifact, MediaReference, MediaStream
from veo_studio.services.errors import EmptyResultError, PollTimeoutError, error_from_payload
from veo_studio.services.video_provider import VideoProvider

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0


class JobPoller:
    """Submits a generation job and waits for it with a fixed-interval poll.

    With ``max_attempts`` left as ``None`` the loop only ends when the provider
    reports the job done or a call raises.
    """

    def __init__(
        self,
        provider: VideoProvider,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    def submit(self, request: GenerationRequest) -> Job:
        return self.provider.submit(request)

    def wait_for_completion(self, job: Job) -> Job:
        attempts = 0
        while not job.done:
            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise PollTimeoutError(
                    f"Job {job.name} did not finish after {attempts} status checks."
                )
            logger.info("Polling for video generation (job %s)...", job.name)
            self._sleep(self.poll_interval)
            job = self.provider.refresh(job)
            attempts += 1

        if job.error:
            logger.error("Video generation job %s failed: %s", job.name, job.error)
            raise error_from_payload(job.error)
        return job

    def run(self, request: GenerationRequest) -> Job:
        """Submit and wait; the returned job always has at least one media reference."""
        job = self.wait_for_completion(self.submit(request))
        if not job.media:
            logger.error("Video generation job %s completed without videos", job.name)
            raise EmptyResultError()
        logger.info("Video generation job %s produced %d video(s)", job.name, len(job.media))
        return job

    def fetch(self, reference: MediaReference) -> MediaArtifact:
        return self.provider.fetch_media(reference)

    def open(self, reference: MediaReference) -> MediaStream:
        return self.provider.open_media(reference)

    def generate(self, request: GenerationRequest) -> List[MediaArtifact]:
        job = self.run(request)
        if len(job.media) == 1:
            return [self.fetch(job.media[0])]
        with ThreadPoolExecutor(max_workers=len(job.media)) as executor:
            return list(executor.map(self.fetch, job.media))
