import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from veo_studio.api.routes import router as api_router
from veo_studio.config import get_settings
from veo_studio.logging_config import configure_logging
from veo_studio.services.errors import ConfigurationError, VideoStudioError

logger = logging.getLogger(__name__)

# Static page directory; read apart from Settings so it needs no credential.
PROJECT_ROOT = Path(__file__).resolve().parent.parent


def frontend_dir_from_env() -> Path:
    return Path(os.getenv("FRONTEND_DIR", str(PROJECT_ROOT / "frontend")))


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuse to start without a credential.
    settings = get_settings()
    logger.info("Video studio proxy ready (model %s)", settings.veo_model_id)
    yield


def create_app(frontend_dir: Optional[Path] = None) -> FastAPI:
    frontend_dir = Path(frontend_dir) if frontend_dir else frontend_dir_from_env()
    app = FastAPI(title="Veo Studio", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    app.mount("/static", StaticFiles(directory=str(frontend_dir), check_dir=False), name="static")

    @app.exception_handler(VideoStudioError)
    async def video_studio_exception_handler(request: Request, exc: VideoStudioError):
        logger.error("Error during video generation on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": exc.user_message})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        messages = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'][1:]) or 'body'}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": messages})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})

    @app.get("/", include_in_schema=False)
    async def serve_index():
        index_file = frontend_dir / "index.html"
        if not index_file.is_file():
            return JSONResponse(status_code=404, content={"error": f"Frontend not found in {frontend_dir}"})
        return FileResponse(index_file)

    return app


app = create_app()


def main() -> None:
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        configure_logging()
        logger.error("%s", exc)
        sys.exit(1)

    configure_logging(settings.log_level)
    logger.info("Server listening on port %s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
