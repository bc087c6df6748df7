import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth.dependencies import require_basic_auth
from company import router as company_router
from core import db
from core.errors import ImportRowError, MasterDataError
from core.settings import Settings
from core.storage import LocalObjectStore
from masterdata import router as masterdata_router
from users import router as users_router

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request or missing parameters"


def _register_error_handlers(app: FastAPI) -> None:
    # Every non-2xx response carries {"error": <message>}.

    @app.exception_handler(ImportRowError)
    async def import_row_error(_: Request, exc: ImportRowError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.as_dict())

    @app.exception_handler(MasterDataError)
    async def master_data_error(_: Request, exc: MasterDataError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        # Initialize the DB pool once per process.
        await db.init_pool(settings)
        logger.info("startup storage_dir=%s", settings.storage_dir)
        try:
            yield
        finally:
            await db.close_pool()

    app = FastAPI(title="Invoice master data API", lifespan=lifespan)
    app.state.settings = settings
    app.state.object_store = LocalObjectStore(settings.storage_dir)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _register_error_handlers(app)

    protected = [Depends(require_basic_auth)]
    app.include_router(masterdata_router.router, prefix="/api", tags=["masterdata"], dependencies=protected)
    app.include_router(company_router.router, prefix="/api", tags=["company"], dependencies=protected)
    app.include_router(users_router.router, prefix="/api", tags=["users"], dependencies=protected)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
