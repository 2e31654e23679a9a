import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skilltrack.config import settings
from skilltrack.db.database import close_db, init_db
from skilltrack.middleware.auth import AuthMiddleware
from skilltrack.services.errors import SkillTrackError

logger = logging.getLogger(__name__)

# CORS: use CORS_ORIGINS (comma-separated) or local dev defaults.
if settings.cors_origins:
    _allowed_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
else:
    _allowed_origins = [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(title="SkillTrack", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(AuthMiddleware)


@app.exception_handler(SkillTrackError)
async def skilltrack_error_handler(request: Request, exc: SkillTrackError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Import and register routes
from skilltrack.routes.auth import router as auth_router
from skilltrack.routes.profile import router as profile_router
from skilltrack.routes.assessments import router as assessments_router
from skilltrack.routes.modules import router as modules_router
from skilltrack.routes.progress import router as progress_router
from skilltrack.routes.recommendations import router as recommendations_router
from skilltrack.routes.hackathons import router as hackathons_router
from skilltrack.routes.alerts import router as alerts_router
from skilltrack.routes.dashboard import router as dashboard_router

app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(assessments_router)
app.include_router(modules_router)
app.include_router(progress_router)
app.include_router(recommendations_router)
app.include_router(hackathons_router)
app.include_router(alerts_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
