# tarotapp/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tarotapp.api.routes import (
    auth_routes,
    history_routes,
    profile_routes,
    root_routes,
    tarot_routes,
)
from tarotapp.core.config import settings
from tarotapp.core.startup import shutdown_event, startup_event

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(root_routes.router)
app.include_router(auth_routes.router, prefix="/api/auth")
app.include_router(profile_routes.router, prefix="/api/profile")
app.include_router(tarot_routes.router, prefix="/api/tarot", tags=["Tarot"])
app.include_router(history_routes.router, prefix="/api/history")


@app.on_event("startup")
async def app_startup():
    await startup_event(app)


@app.on_event("shutdown")
async def app_shutdown():
    await shutdown_event(app)
