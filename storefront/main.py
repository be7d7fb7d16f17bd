import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.config import settings
from storefront.database import engine
from storefront.domain.exceptions import BadRequestError, DomainException
from storefront.infrastructure.db_schema import metadata
from storefront.presentation.api import router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Tables ready")
    except Exception as e:
        logger.error(f"Could not create tables: {e}")

    yield

    await engine.dispose()
    logger.info("Application stopped")


app = FastAPI(
    title="Storefront Order Service",
    description="Orders, payments and returns for the storefront",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = [_describe(error) for error in exc.errors()]
    return JSONResponse(
        status_code=BadRequestError.status_code,
        content={"detail": "; ".join(problems) or "Invalid request", "code": BadRequestError.code}
    )


def _describe(error: dict) -> str:
    # drop the leading "body" / "query" segment
    location = ".".join(str(part) for part in error.get("loc", ())[1:])
    return f"{location}: {error['msg']}" if location else error["msg"]


app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "Storefront order service is running"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
