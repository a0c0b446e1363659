from contextlib import asynccontextmanager
from fastapi import FastAPI

from storyvault import __version__, config
from storyvault.db.sqlite_connector import init_schema

# Routers
from storyvault.api.routers.health import router as health_router
from storyvault.api.routers.stories import router as stories_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Make sure the store schema exists before serving requests."""
    config.configure_logging()
    init_schema()
    yield


app = FastAPI(title="StoryVault", version=__version__, lifespan=lifespan)

app.include_router(health_router)
app.include_router(stories_router)
