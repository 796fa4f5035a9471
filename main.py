import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routers.admin import router as admin_router

# Routers
from routers.exercise import router as exercise_router
from routers.health import router as health_router
from routers.language import router as language_router

logger = logging.getLogger("castle-exercise")
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

app = FastAPI(title="Math World – Castle Exercise API")

# Allow calls from the static front end served locally
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5500",
        "http://127.0.0.1:5500",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*", "x-admin-token"],
)


@app.get("/")
def health_root():
    return {"ok": True}


# Register routers
app.include_router(exercise_router)  # /exercise/...
app.include_router(language_router)  # /i18n/...
app.include_router(admin_router)  # /admin/...
app.include_router(health_router)  # /health/...
