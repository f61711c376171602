import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from exam_platform.api.deps import get_clock, get_session_factory, get_settings
from exam_platform.api.v1.api import api_router
from exam_platform.core.config import Settings, settings as default_settings
from exam_platform.core.database import build_session_factory, create_tables, engine as default_engine, get_db
from exam_platform.core.errors import ExamPlatformError
from exam_platform.core.logging_config import configure_logging
from exam_platform.services.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


# application setup
def create_application(app_settings: Optional[Settings] = None, engine=None, clock=None) -> FastAPI:
    app_settings = app_settings or default_settings
    configure_logging(app_settings.LOG_LEVEL)

    app = FastAPI(
        title="Exam Platform API",
        description="Timed exam attempts, scoring, leaderboards and prizes",
        version="1.0.0",
        docs_url="/docs" if app_settings.DEBUG else None,
        redoc_url="/redoc" if app_settings.DEBUG else None,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API routes
    app.include_router(api_router, prefix="/api/v1")

    bind = engine or default_engine
    session_factory = build_session_factory(bind) if engine is not None else None
    if session_factory is not None:
        def get_bound_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = get_bound_db
        app.dependency_overrides[get_session_factory] = lambda: session_factory
    if app_settings is not default_settings:
        app.dependency_overrides[get_settings] = lambda: app_settings
    if clock is not None:
        app.dependency_overrides[get_clock] = lambda: clock

    sweeper = ExpirySweeper(session_factory or get_session_factory(), settings=app_settings, clock=clock)
    app.state.sweeper = sweeper

    @app.exception_handler(ExamPlatformError)
    async def handle_platform_error(request: Request, exc: ExamPlatformError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.on_event("startup")
    def startup_event():
        """Create tables and start the expiry sweeper"""
        create_tables(bind)
        if app_settings.SWEEP_ENABLED:
            sweeper.start()

    @app.on_event("shutdown")
    def shutdown_event():
        if sweeper.running:
            sweeper.stop()

    @app.get("/")
    def root():
        """Health check"""
        return {"message": "Exam Platform API is running"}

    @app.get("/health")
    def health_check():
        """Detailed health check"""
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": app_settings.ENVIRONMENT,
            "sweeper_running": sweeper.running,
        }

    return app


app = create_application()
