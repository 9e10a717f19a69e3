from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

# ===== IMPORT ROUTERS =====
from app.api.v1 import auth, courses, enrollments, lessons, users
from app.core.exceptions import register_exception_handlers
from app.core.logging import setup_logger
from app.core.settings import settings

# --- MIDDLEWARE ---
from app.middleware.request_context import RequestContextMiddleware
from app.middleware.request_logging import RequestLoggingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ================================
    # 1) LOGGING
    # ================================
    setup_logger()
    logger.info("🚀 Academy backend starting")

    try:
        yield
    finally:
        logger.info("🛑 Academy backend stopped")


# ===== APP CONFIG =====
app = FastAPI(
    title="Academy Backend",
    description="Courses, lessons, enrollments and their media",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)
prefix = "/api/v1"

# ===== REGISTER ROUTERS =====
app.include_router(auth.router, prefix=prefix)
app.include_router(users.router, prefix=prefix)
app.include_router(courses.router, prefix=prefix)
app.include_router(lessons.router, prefix=prefix)
app.include_router(enrollments.router, prefix=prefix)


# ===== ROOT =====
@app.get("/")
async def hello_world():
    return {"message": "Academy API is running"}


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
