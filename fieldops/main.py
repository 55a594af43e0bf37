# fieldops/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fieldops.db import create_db_and_tables
from fieldops.errors import SchedulingError
from fieldops.logging_config import setup_logging
from fieldops.routers import auth_routes, schedules_routes, service_persons_routes, users_routes


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    create_db_and_tables()
    yield


def create_app(lifespan=lifespan) -> FastAPI:
    app = FastAPI(title="fieldops", lifespan=lifespan)

    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(auth_routes.router)
    app.include_router(users_routes.router)
    app.include_router(service_persons_routes.router)
    app.include_router(schedules_routes.router)
    return app


app = create_app()
