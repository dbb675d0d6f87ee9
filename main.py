import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import models  # noqa: F401  registers tables on Base.metadata
from database import Base, engine
from rate_limiter import limiter
from routes import (
    admin_auth,
    admin_complaints,
    admin_users,
    admin_volunteers,
    auth,
    comments,
    complaints,
    users,
    volunteer_complaints,
    votes,
)
from services import storage

app = FastAPI(title="CleanStreet API")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:3001"
).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger("cleanstreet")
logging.basicConfig(level=logging.INFO)


@app.on_event("startup")
def on_startup():
    if os.getenv("CREATE_TABLES", "true").lower() == "true":
        Base.metadata.create_all(bind=engine)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Validation failed",
            "errors": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(_: Request, exc: SQLAlchemyError):
    logger.exception("Database error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Database operation failed"},
    )


@app.exception_handler(storage.StorageError)
async def storage_exception_handler(_: Request, exc: storage.StorageError):
    logger.error("Photo storage failed: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Photo upload failed"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled Exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Server error"},
    )


@app.get("/api/health")
def health():
    return {"success": True, "message": "CleanStreet API is running"}


app.mount(
    "/uploads",
    StaticFiles(directory=storage.UPLOAD_DIR, check_dir=False),
    name="uploads",
)

app.include_router(auth.router)
app.include_router(complaints.router)
app.include_router(votes.router)
app.include_router(comments.router)
app.include_router(users.router)
app.include_router(admin_auth.router)
app.include_router(admin_complaints.router)
app.include_router(admin_users.router)
app.include_router(admin_volunteers.router)
app.include_router(volunteer_complaints.router)
