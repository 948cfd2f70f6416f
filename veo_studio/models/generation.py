import base64
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional


class AspectRatio(str, enum.Enum):
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


@dataclass(frozen=True)
class ReferenceImage:
    data: bytes
    mime_type: str = "image/png"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @classmethod
    def from_base64(cls, encoded: str, mime_type: str = "image/png") -> "ReferenceImage":
        return cls(data=base64.b64decode(encoded), mime_type=mime_type)


@dataclass(frozen=True)
class GenerationRequest:
    """Parameters of one generation, built fresh from the form on every submit."""

    prompt: str
    number_of_videos: int = 1
    duration_seconds: int = 5
    aspect_ratio: Optional[AspectRatio] = None
    reference_image: Optional[ReferenceImage] = None

    def __post_init__(self):
        if self.number_of_videos < 1:
            raise ValueError("number_of_videos must be a positive integer")
        if self.duration_seconds < 1:
            raise ValueError("duration_seconds must be a positive integer")


@dataclass(frozen=True)
class MediaReference:
    uri: Optional[str]
    mime_type: str = "video/mp4"
    # Some provider responses carry the bytes inline instead of a download URI.
    inline_data: Optional[bytes] = field(default=None, repr=False)


@dataclass(frozen=True)
class Job:
    """Provider-side state of a generation; replaced, never mutated, on each refresh."""

    name: str
    done: bool = False
    media: List[MediaReference] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None
    handle: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class MediaArtifact:
    data: bytes = field(repr=False)
    mime_type: str = "video/mp4"
    source_uri: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


class MediaStream:
    """Video bytes read lazily from the provider; ``close`` releases the connection."""

    def __init__(
        self,
        chunks: Iterable[bytes],
        mime_type: str = "video/mp4",
        on_close: Optional[Callable[[], None]] = None,
    ):
        self._chunks = chunks
        self.mime_type = mime_type
        self._on_close = on_close

    @classmethod
    def from_artifact(cls, artifact: MediaArtifact) -> "MediaStream":
        return cls([artifact.data], mime_type=artifact.mime_type)

    def iter_bytes(self) -> Iterator[bytes]:
        for chunk in self._chunks:
            yield chunk

    def close(self) -> None:
        if self._on_close is not None:
            on_close, self._on_close = self._on_close, None
            on_close()
