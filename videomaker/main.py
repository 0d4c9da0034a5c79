from pathlib import Path
import base64
import logging
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Depends, Query, Body, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from videomaker import sheets, storage
from videomaker.auth import admin_guard, basic_login
from videomaker.errors import JobStateError, MissingCredentials, SheetError, UpstreamError
from videomaker.images import generate_images
from videomaker.jobs import clamp_limit, store
from videomaker.log_buffer import buffer
from videomaker.logging_config import setup_logging
from videomaker.models import FailRequest, GenerateVideoRequest, ImageRequest, LogEvent, TTSRequest, utcnow
from videomaker.scheduler import Ticker, run_tick, state
from videomaker.settings import settings
from videomaker.tts import list_voices, synthesize_speech

setup_logging()
log = logging.getLogger("videomaker")

app = FastAPI(title="AI Video Maker API")
ticker = Ticker(settings.TICK_SECONDS)

# ----- Static files -----
STATIC_DIR = (Path(__file__).parent / "static").resolve()
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

# ----- CORS -----
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials="*" not in _origins,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Admin-Secret"],
    max_age=86400,
)


@app.middleware("http")
async def no_store(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("Cache-Control", "no-store")
    return response


# ----- Error translation -----
def _error(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse({"ok": False, "error": error, **jsonable_encoder(extra)}, status_code=status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return _error(404, "NOT_FOUND", path=request.url.path, method=request.method)
    resp = _error(exc.status_code, str(exc.detail))
    for k, v in (exc.headers or {}).items():
        resp.headers[k] = v
    return resp


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return _error(400, "BAD_REQUEST", detail=exc.errors())


@app.exception_handler(UpstreamError)
async def upstream_error(request: Request, exc: UpstreamError):
    log.warning("upstream %s error: %s", exc.service or "?", exc.detail)
    return _error(
        exc.http_status,
        "UPSTREAM_ERROR",
        service=exc.service,
        detail=exc.detail,
        upstream_status=exc.status_code,
        upstream_body=exc.body,
    )


@app.exception_handler(MissingCredentials)
async def missing_credentials(request: Request, exc: MissingCredentials):
    return _error(503, f"{exc.name}_MISSING")


@app.exception_handler(SheetError)
async def sheet_error(request: Request, exc: SheetError):
    log.error("sheet error: %s", exc.detail)
    return _error(500, "SHEET_ERROR", detail=exc.detail, hint=exc.hint)


@app.exception_handler(Exception)
async def unhandled(request: Request, exc: Exception):
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "INTERNAL_ERROR")


# ----- Lifecycle -----
@app.on_event("startup")
async def _start_ticker():
    log.info("server starting (port %s)", settings.PORT)
    if settings.TICK_ENABLED:
        ticker.start()


@app.on_event("shutdown")
async def _stop_ticker():
    await ticker.stop()
    log.info("server stopped")


# ----- Health / status -----
@app.get("/")
@app.get("/health")
def health():
    return {"ok": True, **state.as_dict()}


@app.get("/hello", include_in_schema=False)
def hello():
    return PlainTextResponse("Hello World")


@app.get("/favicon.ico", include_in_schema=False)
def favicon():
    return FileResponse(str(STATIC_DIR / "favicon.svg"), media_type="image/svg+xml")


@app.get("/api/status")
def api_status():
    return {
        "ok": True,
        "service": state.app,
        "version": state.version,
        "uptime_seconds": state.uptime_seconds(),
        "ticks": state.tick_count,
        "last_tick_at": state.last_tick_at,
        "last_error": state.last_error,
        "jobs": {
            "total": len(store),
            "by_status": store.counts(),
            "latest": store.list(10),
        },
    }


# ----- Jobs -----
@app.get("/api/jobs")
def api_list_jobs(limit: Optional[str] = Query(None)):
    return {"ok": True, "jobs": store.list(limit)}


@app.get("/api/jobs/{job_id}")
def api_get_job(job_id: str):
    job = store.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="JOB_NOT_FOUND")
    return {"ok": True, "job": job}


def _create_job(payload: GenerateVideoRequest):
    try:
        job = store.create(payload.prompt, title=payload.title, meta=payload.meta)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "job": job, "next": f"Poll /api/jobs/{job.id}"}


@app.post("/api/generate-video", status_code=201)
def api_generate_video(payload: Optional[GenerateVideoRequest] = Body(None)):
    return _create_job(payload or GenerateVideoRequest())


@app.post("/api/jobs/{job_id}/cancel")
def api_cancel_job(job_id: str):
    try:
        job = store.cancel(job_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="JOB_NOT_FOUND")
    except JobStateError:
        raise HTTPException(status_code=409, detail="JOB_ALREADY_FINISHED")
    return {"ok": True, "job": job}


# ----- Stability image proxy -----
@app.post("/api/generate/image")
def api_generate_image(payload: ImageRequest = Body(...)):
    try:
        out = generate_images(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if storage.is_configured():
        for img in out["images"]:
            if not img.get("base64"):
                continue
            name = f"image_{uuid4().hex[:8]}.png"
            img.update(storage.store_output(name, "image/png", base64.b64decode(img["base64"])))
    return {"ok": True, **out}


# ----- OpenAI text-to-speech proxy -----
@app.post("/tts")
@app.post("/api/tts")
def api_tts(payload: TTSRequest = Body(...)):
    """
    Request: { "text": "Hello world", "language": "en", "voice": "alloy" (optional) }
    Returns audio bytes, or { "s3_key", "download_url" } when store=true and S3 is configured.
    """
    try:
        audio, info = synthesize_speech(
            payload.text,
            language=payload.language,
            voice=payload.voice,
            fmt=payload.format,
            speed=payload.speed,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if payload.store and storage.is_configured():
        fname = f"tts_{uuid4().hex[:8]}.{info['format']}"
        return {"ok": True, **info, **storage.store_output(fname, info["content_type"], audio)}

    return Response(
        content=audio,
        media_type=info["content_type"],
        headers={"X-TTS-Voice": info["voice"], "X-TTS-Language": info["language"]},
    )


# ----- Google Sheet queue -----
def _read_sheet():
    source = sheets.SheetSource(settings)
    records = source.fetch_records()
    return records, sheets.to_sheet_rows(records, settings), source.format


@app.get("/queue")
@app.get("/api/sheet/queue")
def api_sheet_queue(
    status: Optional[str] = Query(None, description="Keep only rows with this status"),
    limit: Optional[str] = Query(None),
):
    records, rows, fmt = _read_sheet()
    has_status = sheets.has_column(records, "status")
    rows = sheets.filter_rows(rows, status, has_status=has_status)
    rows = rows[: clamp_limit(limit, default=500, maximum=5000)]
    return {"ok": True, "format": fmt, "has_status": has_status, "count": len(rows), "rows": rows}


@app.get("/api/queue/next")
def api_queue_next():
    records, rows, _ = _read_sheet()
    item = sheets.next_ready(
        rows,
        settings.SHEET_READY_STATUS,
        has_status=sheets.has_column(records, "status"),
    )
    if item is None:
        return Response(status_code=204)
    return {"ok": True, "item": item}


# ----- Config for the frontend -----
@app.get("/api/config/languages")
def api_languages():
    return {"ok": True, "languages": settings.languages}


@app.get("/api/config/voices")
def api_voices():
    return {"ok": True, "voices": settings.voices, "tts": list_voices(settings)}


# ----- Operational events -----
@app.post("/api/logs/event")
def api_log_event(payload: Optional[LogEvent] = Body(None)):
    event = payload or LogEvent()
    logging.getLogger("videomaker.events").info("[%s] %s %s", event.type, event.message, event.meta or "")
    return {"ok": True, "event": {**event.model_dump(), "created_at": utcnow()}}


# ----- Admin -----
@app.post("/api/admin/login")
def admin_login(secret: str = Depends(basic_login)):
    resp = JSONResponse({"ok": True})
    resp.set_cookie(settings.ADMIN_COOKIE_NAME, secret, httponly=True, samesite="lax")
    return resp


@app.post("/api/admin/logout")
def admin_logout():
    resp = JSONResponse({"ok": True})
    resp.delete_cookie(settings.ADMIN_COOKIE_NAME)
    return resp


@app.get("/api/admin/jobs")
def admin_list_jobs(_: None = Depends(admin_guard)):
    return {"ok": True, "counts": store.counts(), "jobs": store.all()}


@app.post("/api/admin/jobs", status_code=201)
def admin_create_job(
    payload: Optional[GenerateVideoRequest] = Body(None),
    _: None = Depends(admin_guard),
):
    return _create_job(payload or GenerateVideoRequest())


@app.post("/api/admin/jobs/{job_id}/fail")
def admin_fail_job(
    job_id: str,
    payload: Optional[FailRequest] = Body(None),
    _: None = Depends(admin_guard),
):
    try:
        job = store.fail(job_id, (payload or FailRequest()).error)
    except KeyError:
        raise HTTPException(status_code=404, detail="JOB_NOT_FOUND")
    except JobStateError:
        raise HTTPException(status_code=409, detail="JOB_ALREADY_FINISHED")
    return {"ok": True, "job": job}


@app.delete("/api/admin/jobs")
def admin_clear_jobs(_: None = Depends(admin_guard)):
    removed = len(store)
    store.clear()
    log.warning("admin cleared %d jobs", removed)
    return {"ok": True, "removed": removed}


@app.post("/api/admin/tick")
def admin_tick(_: None = Depends(admin_guard)):
    job = run_tick()
    return {"ok": True, "ticks": state.tick_count, "job": job}


@app.get("/api/debug/logs")
def debug_logs(limit: int = Query(100, ge=1, le=5000), _: None = Depends(admin_guard)):
    return {"ok": True, "capacity": buffer.capacity, "lines": buffer.lines(limit)}


def run():
    import uvicorn

    # uvicorn closes the listener on SIGTERM/SIGINT; the grace period is the forced-exit fallback
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        timeout_graceful_shutdown=settings.SHUTDOWN_GRACE_SECONDS,
        log_config=None,
    )


if __name__ == "__main__":
    run()
