import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from routes.chat_ws import router as chat_ws_router
from routes.messages_route import router as messages_router
from services.completion.session import default_client_factory, make_session_factory
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import load_settings, read_provider_credential

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

load_dotenv()  # Load environment variables from .env file if present


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - settings read from the environment
      - the SQLite transcript database (created if missing, never wiped)
      - the factory opening one completion session per user turn
    and attach them to `app.state`.
    """
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )
    app.state.settings = settings

    db_initializer = AsyncDatabaseInitializer(settings.database_path)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    # The credential is read per session, not here; a missing key is
    # reported on the first turn rather than blocking startup.
    if getattr(app.state, "session_factory", None) is None:
        app.state.session_factory = make_session_factory(
            read_provider_credential,
            default_client_factory(settings.provider_base_url),
        )

    logging.getLogger(__name__).info("Transcript database ready at %s", db_initializer.db_path)
    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(title="Nexus Chat", lifespan=lifespan)

    # Serve static assets from the public directory, if it exists.
    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    async def serve_index():
        """
        Serve the frontend index page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting database and credential presence.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        return {
            "ok": True,
            "db_initialized": has_db,
            "credential_configured": read_provider_credential() is not None,
        }

    # Register application routers
    app.include_router(messages_router)
    app.include_router(chat_ws_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=3000)
