import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from radiocheck.core.config import get_settings
from radiocheck.db.base import Base
from radiocheck.db.session import engine
from radiocheck import models  # noqa: F401 - ensure metadata is registered
from radiocheck.api.routes import batches, compute, folders, health, sync, verify

settings = get_settings()

# Basic structured logging to stdout for ops visibility
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/api")
app.include_router(verify.router, prefix="/api")
app.include_router(sync.router, prefix="/api")
app.include_router(batches.router, prefix="/api")
app.include_router(compute.router, prefix="/api")
app.include_router(folders.router, prefix="/api")
