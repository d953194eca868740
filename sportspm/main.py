from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sportspm.api.errors import register_exception_handlers
from sportspm.api.v1.api import api_router
from sportspm.core.config import settings
from sportspm.core.logging import setup_app_logging
from sportspm.db.init_db import init_db
from sportspm.db.session import engine

setup_app_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(engine)
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_STR)
