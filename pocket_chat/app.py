import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from pocket_chat import storage
from pocket_chat.pipeline import ChatPipeline
from pocket_chat.routes import router

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None, pipeline: ChatPipeline | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    storage.init_storage(resolved)
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    app = FastAPI(title="Pocket Chat")
    # One pipeline per app so every request shares the same cooldowns
    app.state.pipeline = pipeline or ChatPipeline(storage.get_settings)
    app.include_router(router, prefix="/api")
    return app
