import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from submission_engine.core.config import LOG_LEVEL
from submission_engine.core.errors import register_exception_handlers
from submission_engine.core.logging_middleware import LoggingMiddleware
from submission_engine.db.init_db import init_db
from submission_engine.routers.assignments import router as assignments_router
from submission_engine.routers.peer_reviews import router as peer_reviews_router
from submission_engine.routers.submissions import router as submissions_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Submission Engine", lifespan=lifespan)

# Middleware
app.add_middleware(LoggingMiddleware)

# Domain errors -> JSON responses
register_exception_handlers(app)


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Include routers
app.include_router(assignments_router, tags=["assignments"])
app.include_router(submissions_router, tags=["submissions"])
app.include_router(peer_reviews_router, tags=["peer-reviews"])
