import logging
from functools import lru_cache
from typing import Any, List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from veo_studio.config import get_settings
from veo_studio.models.generation import GenerationRequest, Job, MediaArtifact, MediaReference, MediaStream
from veo_studio.services.errors import ProviderError, QuotaExceededError, classify_error_text, is_quota_status
from veo_studio.services.video_provider import VideoProvider

logger = logging.getLogger(__name__)


def _wrap_api_error(exc: genai_errors.APIError) -> ProviderError:
    status = getattr(exc, "status", None)
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    if is_quota_status(status, code):
        return QuotaExceededError(message, status=status, code=code)
    return ProviderError(str(exc), status=status, code=code)


class GeminiVideoProvider(VideoProvider):
    """Veo models through the Gemini API."""

    def __init__(
        self,
        api_key: str,
        model_id: str,
        client: Optional[Any] = None,
        http_client: Optional[httpx.Client] = None,
        media_timeout: float = 300.0,
    ):
        self._api_key = api_key
        self.model_id = model_id
        self._client = client or genai.Client(api_key=api_key)
        self._http = http_client or httpx.Client(timeout=media_timeout, follow_redirects=True)

    def submit(self, request: GenerationRequest) -> Job:
        config_kwargs = {
            "number_of_videos": request.number_of_videos,
            "duration_seconds": request.duration_seconds,
        }
        if request.aspect_ratio:
            config_kwargs["aspect_ratio"] = request.aspect_ratio.value
        config = types.GenerateVideosConfig(**config_kwargs)

        image = None
        if request.reference_image:
            image = types.Image(
                image_bytes=request.reference_image.data,
                mime_type=request.reference_image.mime_type,
            )

        try:
            operation = self._client.models.generate_videos(
                model=self.model_id,
                prompt=request.prompt,
                image=image,
                config=config,
            )
        except genai_errors.APIError as exc:
            logger.error("Video generation request was rejected: %s", exc)
            raise _wrap_api_error(exc) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Unable to reach the video generation service: {exc}") from exc
        except ValueError as exc:
            # Raised by the SDK for responses it cannot parse.
            logger.error("Unexpected response to the video generation request: %s", exc)
            raise ProviderError(str(exc)) from exc

        job = self._to_job(operation)
        logger.info("Submitted video generation job %s with model %s", job.name, self.model_id)
        return job

    def refresh(self, job: Job) -> Job:
        try:
            operation = self._client.operations.get(job.handle)
        except genai_errors.APIError as exc:
            logger.error("Failed to fetch status for job %s: %s", job.name, exc)
            raise _wrap_api_error(exc) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Unable to retrieve job status: {exc}") from exc
        except ValueError as exc:
            logger.error("Unexpected status response for job %s: %s", job.name, exc)
            raise ProviderError(str(exc)) from exc
        return self._to_job(operation)

    def fetch_media(self, reference: MediaReference) -> MediaArtifact:
        if reference.inline_data is not None:
            return MediaArtifact(data=reference.inline_data, mime_type=reference.mime_type, source_uri=reference.uri)

        try:
            response = self._http.get(self._media_url(reference))
        except httpx.HTTPError as exc:
            raise ProviderError(f"Failed to fetch video: {exc}") from exc

        if response.is_error:
            raise self._download_error(response)

        logger.info("Fetched %d bytes of generated video", len(response.content))
        return MediaArtifact(data=response.content, mime_type=self._mime_type(response, reference), source_uri=reference.uri)

    def open_media(self, reference: MediaReference) -> MediaStream:
        if reference.inline_data is not None:
            return super().open_media(reference)

        request = self._http.build_request("GET", self._media_url(reference))
        try:
            response = self._http.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Failed to fetch video: {exc}") from exc

        if response.is_error:
            try:
                response.read()
            except httpx.HTTPError as exc:
                raise ProviderError(
                    f"Failed to fetch video: {response.reason_phrase}", code=response.status_code
                ) from exc
            finally:
                response.close()
            raise self._download_error(response)

        logger.info("Streaming generated video from the provider")
        return MediaStream(response.iter_bytes(), mime_type=self._mime_type(response, reference), on_close=response.close)

    def close(self) -> None:
        self._http.close()

    def _media_url(self, reference: MediaReference) -> httpx.URL:
        if not reference.uri:
            raise ProviderError("The generated video has neither a download URI nor inline bytes.")
        # Download URIs already carry ``alt=media``; the key is added next to it.
        return httpx.URL(reference.uri).copy_merge_params({"key": self._api_key})

    @staticmethod
    def _download_error(response: httpx.Response) -> ProviderError:
        error = classify_error_text(response.text) if response.text else None
        if isinstance(error, QuotaExceededError):
            return error
        return ProviderError(f"Failed to fetch video: {response.reason_phrase}", code=response.status_code)

    @staticmethod
    def _mime_type(response: httpx.Response, reference: MediaReference) -> str:
        return response.headers.get("content-type", "").split(";")[0].strip() or reference.mime_type

    @staticmethod
    def _to_job(operation: Any) -> Job:
        response = getattr(operation, "response", None) or getattr(operation, "result", None)
        generated = getattr(response, "generated_videos", None) or []

        media: List[MediaReference] = []
        for item in generated:
            video = getattr(item, "video", None)
            if video is None:
                continue
            uri = getattr(video, "uri", None)
            inline = getattr(video, "video_bytes", None)
            if not uri and inline is None:
                continue
            media.append(
                MediaReference(
                    uri=uri,
                    mime_type=getattr(video, "mime_type", None) or "video/mp4",
                    inline_data=inline,
                )
            )

        return Job(
            name=getattr(operation, "name", None) or "",
            done=bool(getattr(operation, "done", False)),
            media=media,
            error=getattr(operation, "error", None),
            handle=operation,
        )


@lru_cache()
def get_video_provider() -> GeminiVideoProvider:
    settings = get_settings()
    return GeminiVideoProvider(
        api_key=settings.api_key,
        model_id=settings.veo_model_id,
        media_timeout=settings.media_fetch_timeout_seconds,
    )
