"""JSON API for accounts, sessions, and the VIP request workflow."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .accounts import AccountService
from .errors import (
    Conflict,
    Forbidden,
    InvalidState,
    MonsterMediaError,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from .models import Identity, User, UserPatch, VipRequest
from .security import require_admin, require_authenticated, require_vip
from .sessions import SessionAuthenticator, SessionManager
from .vip import VipRequestLedger

logger = logging.getLogger("monstermedia.api")

SESSION_COOKIE_NAME = "monstermedia_session"


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, description="Username or email address")
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    is_vip: bool
    is_admin: bool
    created_at: datetime


class UserUpdateRequest(BaseModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=64)
    email: Optional[str] = Field(default=None, min_length=1, max_length=320)
    is_vip: Optional[bool] = None
    is_admin: Optional[bool] = None

    def to_patch(self) -> UserPatch:
        return UserPatch(
            username=self.username,
            email=self.email,
            is_vip=self.is_vip,
            is_admin=self.is_admin,
        )


class VipRequestCreate(BaseModel):
    email: str = Field(..., max_length=320)
    reason: Optional[str] = None
    user_id: Optional[int] = None


class VipRequestDecision(BaseModel):
    status: str = Field(..., description="Either 'approved' or 'rejected'")


class VipRequestResponse(BaseModel):
    id: int
    user_id: Optional[int]
    email: str
    reason: Optional[str]
    status: str
    created_at: datetime
    decided_at: Optional[datetime] = None


class VipSubmitResponse(BaseModel):
    message: str
    request: VipRequestResponse


class VipAccessResponse(BaseModel):
    user_id: int
    is_vip: bool


class MessageResponse(BaseModel):
    message: str


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        is_vip=user.is_vip,
        is_admin=user.is_admin,
        created_at=user.created_at,
    )


def vip_request_to_response(request: VipRequest) -> VipRequestResponse:
    return VipRequestResponse(
        id=request.id,
        user_id=request.user_id,
        email=request.email,
        reason=request.reason,
        status=request.status.value,
        created_at=request.created_at,
        decided_at=request.decided_at,
    )


_ERROR_STATUS = {
    Unauthenticated: status.HTTP_401_UNAUTHORIZED,
    Forbidden: status.HTTP_403_FORBIDDEN,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidState: status.HTTP_409_CONFLICT,
    Conflict: status.HTTP_409_CONFLICT,
}


def register_error_handlers(app: FastAPI) -> None:
    """Translate domain errors into JSON responses."""

    async def handle_domain_error(request: Request, exc: MonsterMediaError) -> JSONResponse:
        status_code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        payload: Dict[str, object] = {"detail": exc.message}
        if isinstance(exc, ValidationError):
            payload["field"] = exc.field
        return JSONResponse(status_code=status_code, content=payload)

    for error_type in _ERROR_STATUS:
        app.add_exception_handler(error_type, handle_domain_error)


def register_api_routes(
    app: FastAPI,
    *,
    accounts: AccountService,
    ledger: VipRequestLedger,
    sessions: SessionManager,
    authenticator: SessionAuthenticator,
    secure_cookies: bool,
) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application."""

    router = APIRouter(prefix="/api")

    def current_identity(request: Request) -> Optional[Identity]:
        return authenticator.resolve_session(request.cookies.get(SESSION_COOKIE_NAME))

    def authenticated(identity: Optional[Identity] = Depends(current_identity)) -> Identity:
        return require_authenticated(identity)

    def admin(identity: Optional[Identity] = Depends(current_identity)) -> Identity:
        return require_admin(identity)

    def vip(identity: Optional[Identity] = Depends(current_identity)) -> Identity:
        return require_vip(identity)

    def _issue_session_cookie(response: Response, token: str) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            token,
            max_age=sessions.cookie_max_age,
            secure=secure_cookies,
            httponly=True,
            samesite="lax",
            path="/",
        )

    def _start_session(request: Request, response: Response, user: User) -> None:
        existing_token = request.cookies.get(SESSION_COOKIE_NAME)
        if existing_token:
            sessions.destroy(existing_token)
        _issue_session_cookie(response, sessions.create(user.id))

    @router.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    @router.post(
        "/auth/register",
        status_code=status.HTTP_201_CREATED,
        response_model=UserResponse,
    )
    def register(payload: RegisterRequest, request: Request, response: Response) -> UserResponse:
        user = accounts.register(payload.username, payload.email, payload.password)
        _start_session(request, response, user)
        return user_to_response(user)

    @router.post("/auth/login", response_model=UserResponse)
    def login(payload: LoginRequest, request: Request, response: Response) -> UserResponse:
        user = accounts.authenticate(payload.username, payload.password)
        if user is None:
            raise Unauthenticated("Invalid credentials")
        _start_session(request, response, user)
        logger.info("User %s signed in", user.id)
        return user_to_response(user)

    @router.post("/auth/logout", response_model=MessageResponse)
    def logout(request: Request, response: Response) -> MessageResponse:
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if token:
            sessions.destroy(token)
        response.delete_cookie(SESSION_COOKIE_NAME, path="/")
        return MessageResponse(message="Logged out successfully")

    @router.get("/auth/me", response_model=UserResponse)
    def me(identity: Identity = Depends(authenticated)) -> UserResponse:
        return user_to_response(accounts.get_profile(caller=identity))

    # ------------------------------------------------------------------
    # VIP requests and access
    # ------------------------------------------------------------------
    @router.post(
        "/vip-requests",
        status_code=status.HTTP_201_CREATED,
        response_model=VipSubmitResponse,
    )
    def submit_vip_request(
        payload: VipRequestCreate,
        background_tasks: BackgroundTasks,
        identity: Optional[Identity] = Depends(current_identity),
    ) -> VipSubmitResponse:
        user_id = payload.user_id
        if user_id is None and identity is not None:
            user_id = identity.user_id
        vip_request = ledger.submit(
            payload.email,
            payload.reason,
            user_id,
            caller=identity,
            schedule=background_tasks.add_task,
        )
        return VipSubmitResponse(
            message="VIP request submitted successfully",
            request=vip_request_to_response(vip_request),
        )

    @router.get("/vip/access", response_model=VipAccessResponse)
    def vip_access(identity: Identity = Depends(vip)) -> VipAccessResponse:
        return VipAccessResponse(user_id=identity.user_id, is_vip=identity.is_vip)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------
    @router.get("/admin/users", response_model=List[UserResponse])
    def list_users(identity: Identity = Depends(admin)) -> List[UserResponse]:
        return [user_to_response(user) for user in accounts.list_users(caller=identity)]

    @router.patch("/admin/users/{user_id}", response_model=UserResponse)
    def update_user(
        user_id: int,
        payload: UserUpdateRequest,
        identity: Identity = Depends(admin),
    ) -> UserResponse:
        user = accounts.update_user(user_id, payload.to_patch(), caller=identity)
        return user_to_response(user)

    @router.get("/admin/vip-requests", response_model=List[VipRequestResponse])
    def list_vip_requests(
        status_filter: str = Query("pending", alias="status"),
        identity: Identity = Depends(admin),
    ) -> List[VipRequestResponse]:
        requests = ledger.list_by_status(status_filter, caller=identity)
        return [vip_request_to_response(item) for item in requests]

    @router.get("/admin/vip-requests/{request_id}", response_model=VipRequestResponse)
    def get_vip_request(request_id: int, identity: Identity = Depends(admin)) -> VipRequestResponse:
        return vip_request_to_response(ledger.get(request_id, caller=identity))

    @router.patch("/admin/vip-requests/{request_id}", response_model=VipRequestResponse)
    def decide_vip_request(
        request_id: int,
        payload: VipRequestDecision,
        background_tasks: BackgroundTasks,
        identity: Identity = Depends(admin),
    ) -> VipRequestResponse:
        decided = ledger.decide(
            request_id,
            payload.status,
            caller=identity,
            schedule=background_tasks.add_task,
        )
        return vip_request_to_response(decided)

    app.include_router(router)


__all__ = ["SESSION_COOKIE_NAME", "register_api_routes", "register_error_handlers"]
