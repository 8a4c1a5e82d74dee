import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from weekplan.config import get_settings
from weekplan.core.exceptions import register_exception_handlers
from weekplan.api.routes import employees, weeks, leave_requests

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="API for weekly shift schedules and leave requests",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(employees.router, prefix="/api/employees", tags=["Employees"])
    app.include_router(weeks.router, prefix="/api/weeks", tags=["Weekly Schedules"])
    app.include_router(leave_requests.router, prefix="/api/leave-requests", tags=["Leave Requests"])

    @app.get("/")
    async def root():
        return {"message": "Weekly Schedule Engine API", "version": "1.0.0"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    logger.info("%s ready (debug=%s)", settings.app_name, settings.debug)
    return app


app = create_app()
