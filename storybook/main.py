"""
Main FastAPI application for the Storybook API.
Serves book submission, progress, the internal render endpoint, health and metrics.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from storybook.core.config import settings
from storybook.core.logging import configure_logging
from storybook.api.middleware import RequestLoggingMiddleware
from storybook.api.routes import books, health, internal, shared
from storybook.utils.metrics import router as metrics_router


configure_logging()

app = FastAPI(
    title="Storybook API",
    description="Illustrated storybook generation pipeline",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(books.router)
app.include_router(internal.router)
app.include_router(shared.router)
app.include_router(metrics_router)

# Rendered images (LocalStorage); check_dir=False so the app starts before the first upload
app.mount("/media", StaticFiles(directory=settings.storage_base_path, check_dir=False), name="media")
