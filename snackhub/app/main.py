from contextlib import asynccontextmanager

from fastapi import FastAPI

from snackhub.app.api.v1.router import router as v1_router
from snackhub.app.core.config import Settings, settings as default_settings
from snackhub.app.core.logging import configure_logging
from snackhub.app.db.session import Store


def create_app(store: Store | None = None, settings: Settings = default_settings) -> FastAPI:
    """Build the API. A store passed in is owned by the caller; otherwise one is opened for the app's lifetime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        owned = store is None
        app.state.store = Store.open(settings.DATABASE_URL) if owned else store
        try:
            yield
        finally:
            if owned:
                app.state.store.close()

    app = FastAPI(title="SNACKHUB ORDERING", version="0.1.0", lifespan=lifespan)
    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()
