from fastapi import FastAPI, Depends, HTTPException, Request, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import OAuth2PasswordRequestForm
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from typing import List, Optional
from pathlib import Path
import logging

from . import auth
from .categories import accessible_categories
from .config import get_settings
from .database import get_session, init_db
from .errors import ForumError
from .models import Profile
from .observability import (
    setup_logging,
    init_sentry,
    setup_metrics_middleware,
    get_health_check,
)
from .routes import admin as admin_routes
from .routes import complaints as complaint_routes
from .routes import votes as vote_routes

# Setup observability
setup_logging()
init_sentry()

logger = logging.getLogger("quirii")

settings = get_settings()


class ProfilePublic(BaseModel):
    id: str
    name: str
    registration_number: str
    email: str
    hostel: Optional[str] = None
    is_admin: bool
    accessible_categories: List[str]


class RegisterRequest(BaseModel):
    name: str
    registration_number: str
    email: str
    password: str


class RegisterResponse(auth.Token):
    hostel: Optional[str] = None


app = FastAPI(title="Quirii Complaint Forum API")

setup_metrics_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for dev; restrict in prod
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=list(settings.allowed_hosts) or ["*"])

app.include_router(complaint_routes.router)
app.include_router(vote_routes.router)
app.include_router(admin_routes.router)

# Serve locally stored complaint images (development fallback for the S3 store)
if settings.storage_provider == "local":
    _STORAGE_DIR = Path(settings.local_storage_path)
    _STORAGE_DIR.mkdir(parents=True, exist_ok=True)
    app.mount("/storage", StaticFiles(directory=str(_STORAGE_DIR)), name="storage")


@app.exception_handler(ForumError)
async def forum_error_handler(request: Request, exc: ForumError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def _token_response(profile) -> auth.Token:
    role = profile.role or "student"
    token = auth.create_access_token(subject=profile.id, role=role)
    return auth.Token(access_token=token, id=str(profile.id), role=role)


@app.post("/auth/register", status_code=201, response_model=RegisterResponse)
async def register(body: RegisterRequest, session=Depends(get_session)):
    """Student self-registration; the hostel is derived from the registration number."""
    profile = await auth.register_profile(
        session,
        name=body.name,
        registration_number=body.registration_number,
        email=body.email,
        password=body.password,
    )
    logger.info("Registered profile %s (hostel=%s)", profile.id, profile.hostel)
    return RegisterResponse(**_token_response(profile).model_dump(), hostel=profile.hostel)


@app.post("/auth/login", response_model=auth.Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), session=Depends(get_session)):
    profile = await auth.authenticate(form_data.username, form_data.password, session)
    if not profile:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return _token_response(profile)


@app.post("/auth/login-json", response_model=auth.Token)
async def login_json(username: str = Body(...), password: str = Body(...), session=Depends(get_session)):
    profile = await auth.authenticate(username, password, session)
    if not profile:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return _token_response(profile)


@app.get("/api/v1/profile/me", response_model=ProfilePublic)
async def get_current_user_profile(
    actor: auth.Actor = Depends(auth.get_current_actor), session=Depends(get_session)
):
    profile = await session.get(Profile, actor.user_id)
    return ProfilePublic(
        id=profile.id,
        name=profile.name,
        registration_number=profile.registration_number,
        email=profile.email,
        hostel=profile.hostel,
        is_admin=actor.is_admin,
        accessible_categories=accessible_categories(actor.hostel, actor.is_admin),
    )


@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("Starting up complaint forum (storage=%s)", settings.storage_provider)


@app.get("/health")
def health():
    """Health check endpoint."""
    return get_health_check()


@app.get("/metrics")
def metrics() -> Response:
    """Prometheus metrics endpoint."""
    from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
