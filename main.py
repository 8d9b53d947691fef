import inspect
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from dal.session_dal import SessionDAL
from routes.chat_route import router as chat_router
from routes.export_route import router as export_router
from routes.file_route import router as file_router
from routes.session_route import router as session_router
from routes.storage_route import router as storage_router
from services.interview.session_store import SessionStore
from services.openai.chat_client import ChatCompletionClient
from services.openai.file_summarizer import FileSummarizer
from services.openai.speech_service import SpeechSynthesizer
from services.storage.blob_store import LocalBlobStore
from utils.constants import DEFAULT_CHAT_MODEL, DEFAULT_TTS_MODEL, DEFAULT_TTS_VOICE
from utils.database_init import AsyncDatabaseInitializer

load_dotenv()  # Load environment variables from .env file if present

DEFAULT_PUBLIC_BASE_URL = "http://localhost:8000"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite database (kept across restarts, at DATABASE_DIR/app.db)
      - the OpenAI async client and the services built on it
      - the local blob store for attachment images
      - the per-user interview session registry
    and attach them to `app.state`.
    """
    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    openai_api_key = os.getenv("OPENAI_API_KEY")
    if not openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")

    try:
        openai_client = AsyncOpenAI(base_url=os.getenv("OPENAI_BASE_URL") or None)
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc

    app.state.openai_client = openai_client

    blob_dir = os.getenv("BLOB_DIR") or str(Path(db_initializer.db_dir) / "blobs")
    public_base_url = os.getenv("PUBLIC_BASE_URL") or DEFAULT_PUBLIC_BASE_URL
    app.state.blob_store = LocalBlobStore(blob_dir, public_base_url)

    chat_model = os.getenv("CHAT_MODEL") or DEFAULT_CHAT_MODEL
    app.state.speech_synthesizer = SpeechSynthesizer(
        openai_client,
        model=os.getenv("TTS_MODEL") or DEFAULT_TTS_MODEL,
        voice=os.getenv("TTS_VOICE") or DEFAULT_TTS_VOICE,
    )
    app.state.session_store = SessionStore(
        dal=SessionDAL(db_initializer),
        chat=ChatCompletionClient(openai_client, model=chat_model),
        blob_store=app.state.blob_store,
        summarizer=FileSummarizer(openai_client, model=chat_model),
    )

    try:
        yield
    finally:
        await app.state.session_store.close()

        # Gracefully close the OpenAI client if it exposes a close/aclose method.
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                result = aclose()
                if inspect.isawaitable(result):
                    await result


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies DB initializer, OpenAI client and blob store presence.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        has_openai = getattr(request.app.state, "openai_client", None) is not None
        has_blobs = getattr(request.app.state, "blob_store", None) is not None
        return {
            "ok": True,
            "db_initialized": has_db,
            "openai_available": has_openai,
            "blob_store_available": has_blobs,
        }

    app.include_router(session_router)
    app.include_router(file_router)
    app.include_router(chat_router)
    app.include_router(export_router)
    app.include_router(storage_router)

    return app


app = create_app()
