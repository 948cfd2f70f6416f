import binascii
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from veo_studio.models.generation import AspectRatio, GenerationRequest, ReferenceImage


class GenerateVideoRequest(BaseModel):
    """Body of ``POST /generate-video``; field names follow the browser's camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., description="Text prompt for the video model")
    image_bytes: Optional[str] = Field(default=None, alias="imageBytes", description="Base64 reference image")
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    aspect_ratio: Optional[AspectRatio] = Field(default=None, alias="aspectRatio")
    number_of_videos: int = Field(1, alias="numberOfVideos", ge=1)
    duration_seconds: int = Field(5, alias="durationSeconds", ge=1)

    @field_validator("image_bytes", "aspect_ratio", "mime_type", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        # The page sends "" when no image or aspect ratio is selected.
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("image_bytes")
    @classmethod
    def check_base64(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            binascii.a2b_base64(value)
        except binascii.Error as exc:
            raise ValueError("imageBytes must be Base64 encoded") from exc
        return value

    def to_generation_request(self, default_image_mime_type: str = "image/png") -> GenerationRequest:
        image = None
        if self.image_bytes:
            image = ReferenceImage.from_base64(self.image_bytes, self.mime_type or default_image_mime_type)
        return GenerationRequest(
            prompt=self.prompt,
            number_of_videos=self.number_of_videos,
            duration_seconds=self.duration_seconds,
            aspect_ratio=self.aspect_ratio,
            reference_image=image,
        )


class ErrorResponse(BaseModel):
    error: str
