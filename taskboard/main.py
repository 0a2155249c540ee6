"""
Taskboard FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from taskboard import config, db
from taskboard.errors import TaskboardError
from taskboard.repos.datastore import Datastore
from taskboard.repos.memory_store import MemoryDatastore
from taskboard.routes import tasks as task_routes
from taskboard.routes import users as user_routes
from taskboard.services.locks import EntityLocks
from taskboard.services.mutators import TaskMutator, UserMutator

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=config.settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def install_store(app: FastAPI, store: Datastore) -> None:
    """Attach a datastore and the mutators built on it to the app."""
    locks = EntityLocks(enabled=config.settings.ENTITY_LOCKS)
    app.state.store = store
    app.state.user_mutator = UserMutator(store, locks)
    app.state.task_mutator = TaskMutator(store, locks)


async def build_store() -> Datastore:
    if config.settings.STORAGE_BACKEND == "postgres":
        from taskboard.repos.postgres_store import PostgresDatastore

        await db.init_pool()
        logger.info("Database pool initialized")
        return PostgresDatastore()
    logger.info("Using in-memory datastore")
    return MemoryDatastore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Configure logging
    - Build the datastore and mutators
    - Close the datastore on shutdown
    """
    configure_logging()
    store = await build_store()
    install_store(app, store)

    yield

    await store.close()
    logger.info("Datastore closed")


app = FastAPI(
    title="Taskboard",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)


@app.exception_handler(TaskboardError)
async def taskboard_error_handler(request: Request, exc: TaskboardError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message, "data": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"message": "Bad Request", "data": problems or "Invalid request"})


# Register routes
app.include_router(user_routes.router)
app.include_router(task_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
