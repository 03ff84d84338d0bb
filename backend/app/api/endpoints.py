import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from app.core.errors import DriveRelayError, InvalidDriveLink, MissingDriveLink, UpstreamError
from app.domain.models import (
    DriveLinkRequest,
    EngineCommand,
    EngineEvent,
    IngestResult,
    PlayerState,
    SeekRequest,
    SourceFile,
    TrackRecord,
    VolumeRequest,
)
from app.services.drive import DriveRelay
from app.services.engine import ENDED, LOADED_METADATA, TIME_UPDATE, QueuedEngine
from app.services.media_store import MediaStore
from app.services.player import PlaybackController

logger = logging.getLogger(__name__)

router = APIRouter()
player_router = APIRouter(prefix="/player", tags=["player"])
relay_router = APIRouter(tags=["relay"])


def get_player(request: Request) -> PlaybackController:
    return request.app.state.player

def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store

def get_drive_relay(request: Request) -> DriveRelay:
    return request.app.state.drive_relay


@router.get("/health")
async def health_check():
    return {"status": "ok"}

@router.get("/ready")
async def readiness_check(player: PlaybackController = Depends(get_player)):
    return {"status": "ready", "tracks": len(player.tracks)}

@router.get("/connectivity/drive")
async def check_drive_connection(relay: DriveRelay = Depends(get_drive_relay)):
    return await relay.check_connectivity()

@router.get("/media/{ref}")
async def get_media(ref: str, store: MediaStore = Depends(get_media_store)):
    blob = store.get(ref)
    if blob is None:
        raise HTTPException(status_code=404, detail="Media not found")
    return Response(content=blob.data, media_type=blob.media_type)


# Drive relay

@relay_router.post("/download")
async def download_from_drive(
    payload: DriveLinkRequest | None = None,
    relay: DriveRelay = Depends(get_drive_relay),
):
    try:
        download = await relay.download(payload.link if payload else None)
    except DriveRelayError:
        raise
    except Exception as e:
        logger.exception("Unexpected relay failure")
        raise DriveRelayError(str(e)) from e

    return StreamingResponse(
        download.iter_bytes(),
        media_type=download.content_type,
        headers={
            "Content-Disposition": download.content_disposition,
            "Content-Length": str(download.size),
        },
        background=BackgroundTask(download.discard),
    )


# Player

def _require_track(player: PlaybackController, track_id: str) -> TrackRecord:
    track = player.find(track_id)
    if track is None:
        raise HTTPException(status_code=404, detail=f"Track not found: {track_id}")
    return track

@player_router.get("/state")
async def player_state(player: PlaybackController = Depends(get_player)) -> PlayerState:
    return player.snapshot()

@player_router.post("/upload")
async def upload_files(
    files: list[UploadFile] = File(...),
    last_modified: list[int] = Form(default=[]),
    player: PlaybackController = Depends(get_player),
) -> IngestResult:
    sources = []
    for idx, upload in enumerate(files):
        data = await upload.read()
        source = SourceFile(
            name=upload.filename or f"upload_{idx}",
            size=len(data),
            media_type=upload.content_type or "",
            data=data,
        )
        if idx < len(last_modified):
            source.last_modified = last_modified[idx]
        sources.append(source)
    return player.ingest(sources)

@player_router.post("/drive")
async def add_from_drive(
    request: DriveLinkRequest,
    player: PlaybackController = Depends(get_player),
    relay: DriveRelay = Depends(get_drive_relay),
) -> TrackRecord:
    try:
        download = await relay.download(request.link)
        data = await download.read()
    except (MissingDriveLink, InvalidDriveLink) as e:
        raise HTTPException(status_code=400, detail=e.message)
    except UpstreamError as e:
        raise HTTPException(
            status_code=502,
            detail=f"Failed to add file from Google Drive: Server error: {e.status_code}\n{e.body}",
        )
    except DriveRelayError as e:
        raise HTTPException(status_code=502, detail=f"Failed to add file from Google Drive: {e.message}")
    except Exception as e:
        logger.exception("Unexpected failure adding Drive file")
        raise HTTPException(status_code=502, detail=f"Failed to add file from Google Drive: {e}") from e

    source = SourceFile(
        name=download.filename,
        size=len(data),
        media_type=download.content_type,
        data=data,
    )
    return player.add_file(source)

@player_router.post("/tracks/{track_id}/select")
async def select_track(track_id: str, player: PlaybackController = Depends(get_player)) -> PlayerState:
    player.select_track(_require_track(player, track_id))
    return player.snapshot()

@player_router.delete("/tracks/{track_id}")
async def remove_track(track_id: str, player: PlaybackController = Depends(get_player)) -> PlayerState:
    player.remove(_require_track(player, track_id))
    return player.snapshot()

@player_router.post("/play-pause")
async def play_pause(player: PlaybackController = Depends(get_player)) -> PlayerState:
    player.play_pause()
    return player.snapshot()

@player_router.post("/seek")
async def seek(request: SeekRequest, player: PlaybackController = Depends(get_player)) -> PlayerState:
    player.seek(request.seconds)
    return player.snapshot()

@player_router.post("/volume")
async def set_volume(request: VolumeRequest, player: PlaybackController = Depends(get_player)) -> PlayerState:
    player.set_volume(request.volume)
    return player.snapshot()

@player_router.post("/next")
async def next_track(player: PlaybackController = Depends(get_player)) -> PlayerState:
    player.next()
    return player.snapshot()

@player_router.post("/prev")
async def prev_track(player: PlaybackController = Depends(get_player)) -> PlayerState:
    player.prev()
    return player.snapshot()

@player_router.post("/events")
async def engine_event(event: EngineEvent, player: PlaybackController = Depends(get_player)) -> PlayerState:
    engine = player.engine
    if not isinstance(engine, QueuedEngine):
        raise HTTPException(status_code=409, detail="Player is not driven by the browser engine")

    if event.type == TIME_UPDATE:
        engine.emit(TIME_UPDATE, event.current_time)
    elif event.type == LOADED_METADATA:
        engine.emit(LOADED_METADATA, event.duration)
    elif event.type == ENDED:
        engine.emit(ENDED)
    else:
        raise HTTPException(status_code=422, detail=f"Unknown engine event: {event.type}")
    return player.snapshot()

@player_router.get("/commands")
async def drain_commands(player: PlaybackController = Depends(get_player)) -> list[EngineCommand]:
    engine = player.engine
    if not isinstance(engine, QueuedEngine):
        return []
    return engine.drain()
