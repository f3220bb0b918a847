from __future__ import annotations

import logging
from pathlib import Path

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from image_restyler.config import settings
from image_restyler.providers.base import RestyleProvider
from image_restyler.providers.gemini_provider import GeminiProvider
from image_restyler.session import (
    InvalidTransitionError,
    RestyleSession,
    SessionBusyError,
    SessionStore,
)
from image_restyler.styles import STYLES, UnknownStyleError

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Image Restyler AI")

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

# Routes that touch a session are `async def` so every mutation happens on the event loop.
sessions = SessionStore()


def get_provider() -> RestyleProvider:
    if not settings.gemini_api_key:
        raise HTTPException(status_code=400, detail="GEMINI_API_KEY is not set")
    return GeminiProvider(api_key=settings.gemini_api_key)


def _session_for(request: Request) -> tuple[str, RestyleSession]:
    return sessions.get_or_create(request.cookies.get(settings.session_cookie_name))


def _with_cookie(response: Response, session_id: str) -> Response:
    response.set_cookie(settings.session_cookie_name, session_id, httponly=True, samesite="lax")
    return response


def _redirect_home(session_id: str) -> Response:
    return _with_cookie(RedirectResponse(url="/", status_code=303), session_id)


@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    session_id, session = _session_for(request)
    response = templates.TemplateResponse(
        request=request,
        name="index.html",
        context={
            "session": session,
            "view": session.state.kind,
            "styles": STYLES,
        },
    )
    return _with_cookie(response, session_id)


@app.get("/styles")
async def list_styles():
    return [s.to_dict() for s in STYLES]


@app.get("/status")
async def status(request: Request):
    session_id, session = _session_for(request)
    return _with_cookie(JSONResponse(session.status()), session_id)


@app.post("/upload")
async def upload(request: Request, file: UploadFile = File(...)):
    session_id, session = _session_for(request)
    content = await file.read()
    try:
        session.upload(content, file.content_type, file.filename or "upload.bin")
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _redirect_home(session_id)


@app.post("/configure")
async def configure(
    request: Request,
    style_id: str = Form(""),
    twist: str = Form(""),
):
    session_id, session = _session_for(request)
    try:
        session.configure(style_id=style_id or None, twist=twist)
    except UnknownStyleError:
        raise HTTPException(status_code=400, detail=f"unknown style '{style_id}'")
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _redirect_home(session_id)


@app.post("/restyle")
async def restyle(
    request: Request,
    style_id: str | None = Form(None),
    twist: str | None = Form(None),
    provider: RestyleProvider = Depends(get_provider),
):
    session_id, session = _session_for(request)
    try:
        # Settings only change while configuring; from the result view the same request is re-run.
        if session.state.kind == "configuring" and (style_id or twist is not None):
            session.configure(style_id=style_id or None, twist=twist)
        await session.restyle(provider)
    except UnknownStyleError:
        raise HTTPException(status_code=400, detail=f"unknown style '{style_id}'")
    except (SessionBusyError, InvalidTransitionError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _redirect_home(session_id)


@app.post("/start-over")
async def start_over(request: Request):
    session_id, session = _session_for(request)
    session.start_over()
    sessions.discard(session_id)
    session_id, _ = sessions.get_or_create(None)
    return _redirect_home(session_id)


@app.get("/download")
async def download(request: Request):
    session_id, session = _session_for(request)
    try:
        filename, content = session.download()
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    response = Response(
        content=content,
        media_type="image/jpeg",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
    return _with_cookie(response, session_id)
