import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authz_backend.api.permissions import permissions_router, roles_router
from authz_backend.permissions.auth import get_permission_cache
from authz_backend.redis_cache import close_redis_client
from authz_backend.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):

    if settings.DEBUG_MODE != "production":
        logging.basicConfig(level=logging.DEBUG)

    yield

    # Let in-flight invalidations finish before the loop goes away
    cache = get_permission_cache()
    if cache.invalidations.pending:
        logger.info(f"Waiting for {cache.invalidations.pending} cache invalidation(s)")
    await cache.invalidations.drain()
    await close_redis_client()

app = FastAPI(lifespan=lifespan)

origins = [
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(
    permissions_router,
    prefix="/permissions",
    tags=["permissions"]
)

app.include_router(
    roles_router,
    prefix="/roles",
    tags=["roles"]
)


@app.head("/", status_code=204)
def get_status_head():
    return
