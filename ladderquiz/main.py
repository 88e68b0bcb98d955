from fastapi import FastAPI
from dotenv import load_dotenv
import logging

from ladderquiz.api.routes import router
from ladderquiz.assets.startup import init_assets_for_app
from ladderquiz.settings import get_settings

# Local runs may keep REDIS_URL / LADDERQUIZ_* in a .env file; real env vars win.
load_dotenv(override=False)

app = FastAPI(title="ladderquiz", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    init_assets_for_app()
    logger.info("board catalog loaded")


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "ladderquiz", "version": "0.1.0"}
