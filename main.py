"""
Application entry point for the Course Discovery backend.

Design choices:
- The store client and the search pipeline are constructed once on startup and
  kept on app.state; routes receive them through a dependency, never through
  module globals.
- Every error leaves the service in the same {error: {code, message}} envelope,
  including FastAPI's own 404/405/422 responses.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1.routes import router as courses_router
from core.config import get_settings
from core.errors import ApiError, METHOD_NOT_ALLOWED_CODE, error_body
from core.logging_config import configure_logging
from middleware import RequestContextMiddleware, create_request_context_config
from services.course_store import create_course_store
from services.search_service import CourseSearchService

_settings = get_settings()

# Configure structured logging
configure_logging(_settings.log_level)
logger = logging.getLogger("startup")

app = FastAPI(title="Course Discovery API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware, config=create_request_context_config())


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        code, message = METHOD_NOT_ALLOWED_CODE, "Method not allowed"
    elif exc.status_code == 404:
        code, message = "E_NOT_FOUND", "Not found"
    else:
        code, message = f"E_HTTP_{exc.status_code}", str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_body(code, message), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
    return JSONResponse(status_code=400, content=error_body("E_VALIDATION", message))


@app.get("/")
async def root():
    return {"message": "Course Discovery API is running"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


app.include_router(courses_router, prefix=_settings.api_prefix)


@app.on_event("startup")
async def startup_event():
    """Create the store client and the search pipeline exactly once."""
    store = create_course_store(_settings)
    app.state.course_store = store
    app.state.search_service = CourseSearchService.from_settings(_settings, store)
    logger.info("search pipeline ready", extra={"source": "store" if store else "seed"})


@app.on_event("shutdown")
async def shutdown_event():
    store = getattr(app.state, "course_store", None)
    if store is not None:
        store.close()
