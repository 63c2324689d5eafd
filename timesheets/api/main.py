import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timesheets import __version__
from timesheets.core.config import get_settings
from timesheets.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    TimesheetError,
    ValidationError,
    WindowError,
)
from timesheets.core.logger import setup_logger
from timesheets.api.routers import timesheets, approvals, delegations

settings = get_settings()

setup_logger("timesheets", settings)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Timesheet approval and delegation authorization engine",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    ValidationError: 422,
    WindowError: 422,
    StateConflictError: 409,
    AuthorizationError: 403,
    NotFoundError: 404,
}


@app.exception_handler(TimesheetError)
async def timesheet_error_handler(request: Request, exc: TimesheetError):
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        400,
    )
    logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status_code, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Include routers
app.include_router(timesheets.router, prefix="/api")
app.include_router(approvals.router, prefix="/api")
app.include_router(delegations.router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": __version__}


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
