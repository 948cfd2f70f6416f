import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from veo_studio.config import Settings, get_settings
from veo_studio.models.schemas import ErrorResponse, GenerateVideoRequest
from veo_studio.services.genai_client import get_video_provider
from veo_studio.services.video_job_service import JobPoller

logger = logging.getLogger(__name__)

router = APIRouter()

VIDEO_MEDIA_TYPE = "video/mp4"


def get_job_poller(settings: Settings = Depends(get_settings)) -> JobPoller:
    return JobPoller(
        get_video_provider(),
        poll_interval=settings.poll_interval_seconds,
        max_attempts=settings.poll_max_attempts,
    )


@router.post(
    "/generate-video",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"video/mp4": {}}, "description": "The generated video"},
        500: {"model": ErrorResponse},
    },
)
def generate_video(
    payload: GenerateVideoRequest,
    settings: Settings = Depends(get_settings),
    poller: JobPoller = Depends(get_job_poller),
):
    request = payload.to_generation_request(settings.default_image_mime_type)
    job = poller.run(request)

    # Only the first video is returned, whatever number was requested.
    if len(job.media) > 1:
        logger.info("Job %s produced %d videos; returning the first", job.name, len(job.media))
    stream = poller.open(job.media[0])

    return StreamingResponse(stream.iter_bytes(), media_type=VIDEO_MEDIA_TYPE, background=BackgroundTask(stream.close))


@router.get("/health")
def health_check():
    return {"status": "ok"}
