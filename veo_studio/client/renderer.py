import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from veo_studio.models.generation import MediaArtifact

logger = logging.getLogger(__name__)


@dataclass
class PlayableVideo:
    """A rendered result: a local URL to play from plus a download action."""

    artifact: MediaArtifact
    path: Path
    download_name: str = "video.mp4"
    autoplay: bool = True
    loop: bool = True
    controls: bool = True
    released: bool = field(default=False, init=False)

    @property
    def url(self) -> str:
        return self.path.resolve().as_uri()

    def download(self, directory: Path) -> Path:
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / self.download_name
        target.write_bytes(self.artifact.data)
        return target

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class ResultRenderer:
    """Owns the result area. Rendering a new batch releases the previous one."""

    def __init__(self, scratch_dir: Optional[Path] = None):
        self.scratch_dir = Path(scratch_dir) if scratch_dir else None
        self.items: List[PlayableVideo] = []

    def clear(self) -> None:
        for item in self.items:
            item.release()
        self.items = []

    def render(self, artifacts: Sequence[MediaArtifact]) -> List[PlayableVideo]:
        self.clear()
        if self.scratch_dir:
            self.scratch_dir.mkdir(parents=True, exist_ok=True)

        multiple = len(artifacts) > 1
        for index, artifact in enumerate(artifacts, start=1):
            fd, name = tempfile.mkstemp(
                prefix="veo-studio-",
                suffix=_suffix_for(artifact.mime_type),
                dir=str(self.scratch_dir) if self.scratch_dir else None,
            )
            with os.fdopen(fd, "wb") as handle:
                handle.write(artifact.data)
            download_name = f"video-{index}.mp4" if multiple else "video.mp4"
            self.items.append(PlayableVideo(artifact=artifact, path=Path(name), download_name=download_name))

        logger.debug("Rendered %d video(s)", len(self.items))
        return list(self.items)

    def close(self) -> None:
        self.clear()

    def __enter__(self) -> "ResultRenderer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _suffix_for(mime_type: str) -> str:
    if mime_type == "video/webm":
        return ".webm"
    return ".mp4"
