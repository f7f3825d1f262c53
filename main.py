"""FastAPI application entrypoint."""

from pathlib import Path
from fastapi import FastAPI

from routes import forms, maps, navigation
from config import config
from utils.logging import configure_logger

LOG_FILE = Path(config.LOG_DIR) / "server.log"
logger = configure_logger(__name__, LOG_FILE)

logger.info("Initializing FastAPI app")
app = FastAPI(title="Map Directory")
app.include_router(maps.router)
app.include_router(forms.router)
app.include_router(navigation.router)
logger.info("Routers registered")
