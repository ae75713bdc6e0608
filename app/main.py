import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.database import Base, engine
from app.models.user import User  # noqa: F401
from app.models.household import Household, HouseholdAdmin  # noqa: F401
from app.models.inventory import ProductType, ProductBatch  # noqa: F401
from app.models.group import Group  # noqa: F401
from app.models.membership import GroupMembership  # noqa: F401
from app.models.invitation import GroupInvitation  # noqa: F401
from app.models.contribution import GroupInventoryContribution  # noqa: F401

from app.api.routes.auth import router as auth_router
from app.api.routes.group_inventory import router as group_inventory_router
from app.api.routes.groups import router as groups_router
from app.api.routes.invitations import router as invitations_router

from app.realtime.sse import router as sse_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready")
    yield


app = FastAPI(title="Preparedness Groups API", version="0.1.0", lifespan=lifespan)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s: %s", request.method, request.url.path, exc)
    if settings.DEV:
        return JSONResponse(status_code=500, content={"detail": str(exc)})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# CORS first
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=False,
)

# Routers after
app.include_router(auth_router)

# /groups/inventory/... before /groups/{group_id}/...
app.include_router(group_inventory_router)
app.include_router(groups_router)
app.include_router(invitations_router)

app.include_router(sse_router)


@app.get("/")
def root():
    return {"status": "ok", "message": "Preparedness Groups API"}


@app.get("/health")
def health():
    return {"ok": True}
