"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import router
from app.config import CORS_ORIGINS, MAX_FILE_SIZE_MB, SUPPORTED_FORMATS, UPLOAD_DIR, logger as config_logger
from app.conversion.codec import shutdown_codec
from app.errors import AppError, ErrorKind, error_response

logging.getLogger("uvicorn").setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config_logger.info(
        "Converter API started (uploads: %s, formats: %s, max size: %s MB)",
        UPLOAD_DIR,
        ", ".join(SUPPORTED_FORMATS),
        MAX_FILE_SIZE_MB,
    )
    yield
    shutdown_codec()
    config_logger.info("Converter API shutting down")


app = FastAPI(
    title="Image Converter API",
    description="Convert, resize and compress images, one at a time or bundled into a zip.",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if CORS_ORIGINS else ["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept"],
    expose_headers=["Content-Disposition", "Content-Type", "Content-Length"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    config_logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.kind.code)
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(AppError(ErrorKind.VALIDATION_ERROR, details={"errors": jsonable_errors(exc)}))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return error_response(AppError(ErrorKind.NOT_FOUND))
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": "HTTP_ERROR"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    config_logger.exception("Unexpected error on %s %s: %s", request.method, request.url.path, exc)
    return error_response(AppError(ErrorKind.INTERNAL))


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]


app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    from app.config import HOST, PORT
    uvicorn.run("app.main:app", host=HOST, port=PORT, reload=True)
