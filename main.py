import logging
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from config import get_settings
from endpoints.places import place_routes
from endpoints.routes import route_routes
from endpoints.system import router as system_router
from utils.error_handling import register_exception_handlers

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"

app = FastAPI(
    title="PeakRoute API",
    description="Finds the best upcoming bus routes between two places, optionally for a desired arrival time.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(route_routes)
app.include_router(place_routes)
app.include_router(system_router)


@app.get("/", include_in_schema=False)
async def index():
    return FileResponse(STATIC_DIR / "index.html")


if not settings.google_maps_api_key:
    logger.warning("GOOGLE_MAPS_API_KEY is not set; upstream requests will fail until it is configured")


if __name__ == "__main__":
    logger.info("Server listening on port %d", settings.api_port)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
