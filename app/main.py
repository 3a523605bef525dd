import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.database import init_db

settings = get_settings()
logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create missing tables
    init_db()
    logger.info("%s started", settings.APP_NAME)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get(f"{settings.API_PREFIX}/health")
def health_check():
    return {"status": "ok", "app": settings.APP_NAME}


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

# Holiday calendar / deadline preview
from app.routers import calendar  # noqa: E402

app.include_router(
    calendar.router,
    prefix=f"{settings.API_PREFIX}/calendar",
    tags=["Calendar"],
)

# Year buckets
from app.routers import years  # noqa: E402

app.include_router(
    years.router,
    prefix=f"{settings.API_PREFIX}/years",
    tags=["Years"],
)

# Projects and their derived tasks
from app.routers import projects  # noqa: E402

app.include_router(
    projects.router,
    prefix=f"{settings.API_PREFIX}/projects",
    tags=["Projects"],
)

# Tasks and dashboard
from app.routers import tasks  # noqa: E402

app.include_router(
    tasks.router,
    prefix=f"{settings.API_PREFIX}/tasks",
    tags=["Tasks"],
)

# JSON backup / storage statistics
from app.routers import backup  # noqa: E402

app.include_router(
    backup.router,
    prefix=f"{settings.API_PREFIX}/backup",
    tags=["Backup"],
)

# Excel export
from app.routers import export  # noqa: E402

app.include_router(
    export.router,
    prefix=f"{settings.API_PREFIX}/export",
    tags=["Export"],
)
