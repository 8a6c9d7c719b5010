import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Load env from pomotrack/.env before settings are read
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from pomotrack.core.config import settings, validate_config  # noqa: E402
from pomotrack.core.database import create_all_tables  # noqa: E402
from pomotrack.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from pomotrack.core.logging import configure_logging  # noqa: E402
from pomotrack.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from pomotrack.core.validation import validate_env  # noqa: E402
from pomotrack.api import admin, dashboard, health, presence, sessions, streaks, user  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("pomotrack")
    logger.info("Starting pomotrack backend...")
    app.state.startup_time = time.time()
    create_all_tables()
    try:
        yield
    finally:
        logging.getLogger("pomotrack").info("Stopping pomotrack backend...")


app = FastAPI(title="pomotrack", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.split_csv(settings.CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions.router)
app.include_router(dashboard.router)
app.include_router(streaks.router, tags=["streaks"])
app.include_router(presence.router)
app.include_router(user.router)
app.include_router(admin.router)
app.include_router(health.router)
app.include_router(health.root_router)
