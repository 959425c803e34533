"""HTTP API for the club site: auth, postings, roster, and live notifications."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from .auth import AuthGate
from .broadcast import BroadcastHub
from .config import Settings
from .credentials import Credential, CredentialIssuer
from .errors import ClubError
from .mail import MailDispatcher, Mailer, build_mailer
from .models import Role
from .pipeline import MutationPipeline
from .security import CREDENTIAL_COOKIE_NAME, CredentialAuth, RoleGuard
from .store import FlatFileStore
from .uploads import IncomingFile, UploadStorage

logger = logging.getLogger("clubsite.service")

_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class LoginRequest(BaseModel):
    email: Optional[str] = None
    role: Optional[str] = None
    password: Optional[str] = None


class TeamMemberRequest(BaseModel):
    name: Optional[str] = None
    position: Optional[str] = None
    department: Optional[str] = None
    email: Optional[str] = None


class OnboardRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None


async def _club_error_handler(request: Request, exc: ClubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": "Invalid request"}, status_code=400)


async def _incoming(upload: UploadFile) -> IncomingFile:
    content = await upload.read()
    return IncomingFile(filename=upload.filename or "", content=content)


def register_api_routes(
    app: FastAPI,
    *,
    gate: AuthGate,
    pipeline: MutationPipeline,
    hub: BroadcastHub,
    secure_cookies: bool,
) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application."""

    current_user = CredentialAuth(gate)
    bearer = RoleGuard(current_user, Role.BEARER)
    cookie_max_age = gate.issuer.cookie_max_age

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    @app.post("/api/auth/login")
    async def login(payload: LoginRequest) -> JSONResponse:
        credential = await gate.login(payload.email, payload.role, payload.password)
        response = JSONResponse({"ok": True, "user": credential.claims()})
        response.set_cookie(
            CREDENTIAL_COOKIE_NAME,
            credential.token,
            max_age=cookie_max_age,
            secure=secure_cookies,
            httponly=True,
            samesite="lax",
            path="/",
        )
        return response

    @app.post("/api/auth/logout")
    async def logout() -> JSONResponse:
        response = JSONResponse({"ok": True})
        response.delete_cookie(CREDENTIAL_COOKIE_NAME, path="/")
        return response

    @app.get("/api/auth/me")
    async def me(user: Credential = Depends(current_user)) -> Dict[str, Any]:
        return {"user": user.claims()}

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    @app.get("/api/events")
    async def list_events() -> Dict[str, Any]:
        return {"events": await pipeline.list_events()}

    @app.post("/api/events")
    async def create_event(
        user: Credential = Depends(bearer),
        title: Optional[str] = Form(None),
        date: Optional[str] = Form(None),
        venue: Optional[str] = Form(None),
        photos: Optional[List[UploadFile]] = File(None),
    ) -> Dict[str, Any]:
        incoming = [await _incoming(upload) for upload in photos or []]
        event = await pipeline.create_event(user, title=title, date=date, venue=venue, photos=incoming)
        return {"ok": True, "event": event}

    # ------------------------------------------------------------------
    # Live notifications
    # ------------------------------------------------------------------
    @app.get("/api/notifications")
    async def notifications(request: Request) -> StreamingResponse:
        subscription = hub.subscribe()
        return StreamingResponse(
            hub.stream(subscription, is_disconnected=request.is_disconnected),
            media_type="text/event-stream",
            headers=_STREAM_HEADERS,
        )

    # ------------------------------------------------------------------
    # Team roster
    # ------------------------------------------------------------------
    @app.get("/api/team")
    async def list_team() -> Dict[str, Any]:
        return {"team": await pipeline.list_team()}

    @app.post("/api/team")
    async def create_team_member(
        payload: TeamMemberRequest,
        user: Credential = Depends(bearer),
    ) -> Dict[str, Any]:
        member = await pipeline.create_team_member(
            user,
            name=payload.name,
            position=payload.position,
            department=payload.department,
            email=payload.email,
        )
        return {"ok": True, "member": member}

    @app.put("/api/team/{member_id}")
    async def update_team_member(
        member_id: str,
        payload: TeamMemberRequest,
        user: Credential = Depends(bearer),
    ) -> Dict[str, Any]:
        member = await pipeline.update_team_member(
            user,
            member_id,
            name=payload.name,
            position=payload.position,
            department=payload.department,
            email=payload.email,
        )
        return {"ok": True, "member": member}

    @app.delete("/api/team/{member_id}")
    async def delete_team_member(member_id: str, user: Credential = Depends(bearer)) -> Dict[str, Any]:
        removed = await pipeline.delete_team_member(user, member_id)
        return {"ok": True, "removed": removed}

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------
    @app.post("/api/members/onboard")
    async def onboard_member(
        payload: OnboardRequest,
        user: Credential = Depends(bearer),
    ) -> Dict[str, Any]:
        created, temp_password = await pipeline.onboard_member(
            user,
            email=payload.email,
            name=payload.name,
            role=payload.role,
        )
        return {"ok": True, "user": created, "tempPassword": temp_password}

    # ------------------------------------------------------------------
    # Achievements
    # ------------------------------------------------------------------
    @app.get("/api/achievements")
    async def list_achievements() -> Dict[str, Any]:
        return {"achievements": await pipeline.list_achievements()}

    @app.post("/api/achievements")
    async def create_achievement(
        user: Credential = Depends(bearer),
        title: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        link: Optional[str] = Form(None),
        image: Optional[UploadFile] = File(None),
    ) -> Dict[str, Any]:
        incoming = await _incoming(image) if image is not None else None
        achievement = await pipeline.create_achievement(
            user,
            title=title,
            description=description,
            link=link,
            image=incoming,
        )
        return {"ok": True, "achievement": achievement}


def create_app(
    settings: Settings | None = None,
    *,
    store: FlatFileStore | None = None,
    hub: BroadcastHub | None = None,
    mailer: Mailer | None = None,
    issuer: CredentialIssuer | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the club site."""

    config = settings or Settings.from_env()

    file_store = store or FlatFileStore(config.data_dir)
    file_store.initialize(config.seed_users())
    file_store.verify()

    config.uploads_dir.mkdir(parents=True, exist_ok=True)

    broadcast_hub = hub or BroadcastHub()
    dispatcher = MailDispatcher(mailer or build_mailer(config.mail))
    credential_issuer = issuer or CredentialIssuer(config.secret, ttl=config.credential_ttl, clock=clock)
    gate = AuthGate(file_store, credential_issuer)
    pipeline = MutationPipeline(
        file_store,
        broadcast_hub,
        dispatcher,
        UploadStorage(config.uploads_dir, config.base_url, limit=config.max_uploads),
        org_name=config.org_name,
        base_url=config.base_url,
        clock=clock,
    )

    if not config.secure_cookies:
        logger.warning(
            "Credential cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        broadcast_hub.close_all()
        await dispatcher.wait_idle()

    app = FastAPI(
        title="Club Site API",
        version="0.1.0",
        description="Events, team roster, achievements and live notifications for the club website.",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ClubError, _club_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    app.state.settings = config
    app.state.store = file_store
    app.state.hub = broadcast_hub
    app.state.mail = dispatcher
    app.state.gate = gate
    app.state.pipeline = pipeline

    register_api_routes(
        app,
        gate=gate,
        pipeline=pipeline,
        hub=broadcast_hub,
        secure_cookies=config.secure_cookies,
    )
    app.mount("/uploads", StaticFiles(directory=str(config.uploads_dir)), name="uploads")

    return app


__all__ = ["create_app", "register_api_routes"]
