import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles

from app.api.endpoints import player_router, relay_router
from app.api.endpoints import router as api_router
from app.core.errors import DriveRelayError, UpstreamError
from app.core.logging import configure_logging
from app.core.settings import settings
from app.services.drive import DriveRelay
from app.services.engine import QueuedEngine
from app.services.media_store import MediaStore
from app.services.metadata import MetadataResolver
from app.services.player import PlaybackController

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    store = MediaStore()
    app.state.media_store = store
    app.state.player = PlaybackController(MetadataResolver(store), QueuedEngine())
    app.state.drive_relay = DriveRelay()
    logger.info(f"{settings.APP_NAME} started")
    yield
    # Session teardown: every playable and cover reference is released here
    app.state.player.release_all()
    store.clear()

app = FastAPI(
    title=settings.APP_NAME,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


@app.exception_handler(DriveRelayError)
async def drive_relay_error_handler(_request: Request, exc: DriveRelayError):
    if isinstance(exc, UpstreamError):
        return Response(
            content=exc.content,
            status_code=exc.status_code,
            media_type=exc.content_type or "text/plain",
        )
    return PlainTextResponse(exc.body, status_code=exc.status_code)


app.include_router(relay_router)
app.include_router(api_router, prefix="/api/v1")
app.include_router(player_router, prefix="/api/v1")



# Static Files Mounting (For Portable/Production without Nginx)
# Serve the front end build from 'static' or, when developing, ../frontend/dist
if getattr(sys, 'frozen', False):
    # PyInstaller creates a temp folder and stores path in _MEIPASS
    base_dir = Path(sys._MEIPASS)
    static_dir = base_dir / "static"
else:
    static_dir = Path("static")
    if not static_dir.exists():
        static_dir = Path("../frontend/dist")

if static_dir.exists() and static_dir.is_dir():
    app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
