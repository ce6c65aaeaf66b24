import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medvault.config import API_PREFIX, CORS_ORIGINS, LOG_LEVEL
from medvault.database import close_db, init_db
from medvault.datastore import Datastore, get_datastore
from medvault.errors import register_exception_handlers
from medvault.routers import health_records, patients, providers, users
from medvault.services.auth import close_auth, init_auth

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting MedVault...")
    await init_db()
    init_auth()
    logger.info("Database initialized")
    yield
    close_auth()
    await close_db()
    logger.info("MedVault shut down")


app = FastAPI(
    title="MedVault",
    description="Patient, provider and health record API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(health_records.router, prefix=API_PREFIX)
app.include_router(patients.router, prefix=API_PREFIX)
app.include_router(providers.router, prefix=API_PREFIX)
app.include_router(users.router, prefix=API_PREFIX)


@app.get("/")
async def root():
    return {"success": True, "message": "MedVault API running"}


@app.get(f"{API_PREFIX}/health")
async def health(store: Datastore = Depends(get_datastore)):
    """Liveness check including a datastore round trip."""
    return {"success": True, "database": "ok" if await store.ping() else "unavailable"}
