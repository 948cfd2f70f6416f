"""
Command-line client. Talks to the proxy by default:
  veo-studio-client "a paper boat drifting down a rainy street" --videos 1 --duration 5
  veo-studio-client "..." --image cat.png --aspect-ratio 9:16 --direct
"""

import argparse
import logging
import sys
import webbrowser
from pathlib import Path
from typing import List, Optional

from veo_studio.client.renderer import ResultRenderer
from veo_studio.client.submitter import (
    DEFAULT_PROXY_URL,
    DirectVideoBackend,
    GenerationForm,
    JobSubmitter,
    ProxyVideoBackend,
)
from veo_studio.client.ui_state import StatusLine, UIState
from veo_studio.logging_config import configure_logging
from veo_studio.models.generation import AspectRatio
from veo_studio.services.errors import VideoStudioError

logger = logging.getLogger(__name__)


def _print_status(text: str, is_error: bool) -> None:
    print(text, file=sys.stderr, flush=True)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a video from a text prompt")
    parser.add_argument("prompt", help="Text prompt describing the video")
    parser.add_argument("--image", type=Path, help="Optional reference image")
    parser.add_argument(
        "--aspect-ratio",
        choices=[ratio.value for ratio in AspectRatio],
        help="Aspect ratio of the generated video",
    )
    parser.add_argument("--videos", type=_positive_int, default=1, help="Number of videos to request")
    parser.add_argument("--duration", type=_positive_int, default=5, help="Duration of each video in seconds")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--proxy-url", default=DEFAULT_PROXY_URL, help="Base URL of the proxy server")
    target.add_argument(
        "--direct",
        action="store_true",
        help="Call the provider directly with API_KEY instead of going through the proxy",
    )
    parser.add_argument("--output-dir", type=Path, default=Path("."), help="Where downloaded videos are written")
    parser.add_argument("--play", action="store_true", help="Open the downloaded videos in the default player")
    return parser


def _build_backend(args: argparse.Namespace):
    if not args.direct:
        return ProxyVideoBackend(base_url=args.proxy_url)

    from veo_studio.config import get_settings
    from veo_studio.services.genai_client import GeminiVideoProvider
    from veo_studio.services.video_job_service import JobPoller

    settings = get_settings()
    provider = GeminiVideoProvider(
        api_key=settings.api_key,
        model_id=settings.veo_model_id,
        media_timeout=settings.media_fetch_timeout_seconds,
    )
    return DirectVideoBackend(
        JobPoller(
            provider,
            poll_interval=settings.poll_interval_seconds,
            max_attempts=settings.poll_max_attempts,
        )
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging("WARNING")

    form = GenerationForm(
        prompt=args.prompt,
        aspect_ratio=args.aspect_ratio,
        number_of_videos=args.videos,
        duration_seconds=args.duration,
    )
    if args.image:
        if not args.image.is_file():
            parser.error(f"image not found: {args.image}")
        form.attach_image(args.image)

    try:
        backend = _build_backend(args)
    except VideoStudioError as exc:
        _print_status(f"Error: {exc.user_message}", True)
        return 1

    try:
        with ResultRenderer() as renderer:
            submitter = JobSubmitter(backend, ui=UIState(status=StatusLine(_print_status)), renderer=renderer)
            try:
                videos = submitter.submit(form)
            except Exception:
                # Already shown on the status line.
                return 1

            for video in videos:
                target = video.download(args.output_dir)
                print(target)
                if args.play:
                    webbrowser.open(target.resolve().as_uri())
    finally:
        backend.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
