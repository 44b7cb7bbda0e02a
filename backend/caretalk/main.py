import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from .config import Settings, settings
from .errors import ConfigError, TransportError
from .models.schemas import HealthResponse
from .orchestrator import StreamingOrchestrator
from .services.asr_google import GoogleTranscriber
from .services.translate_libre import LibreTranslate
from .services.translate_llm import LLMTranslate
from .services.translate_orchestrator import TranslatorOrchestrator
from .services.tts_google import GoogleTTSService
from .services.tts_gtts import GTTSService
from .transport import AudioMessage, SessionTransport

# Logging
logger = logging.getLogger("caretalk")
if not logger.handlers:
    handler = logging.StreamHandler()
    fmt = logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(fmt)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)

OrchestratorFactory = Callable[[Settings], StreamingOrchestrator]


def build_orchestrator(cfg: Settings) -> StreamingOrchestrator:
    """Validate configuration and wire the process-wide service clients."""
    cfg.validate()
    llm = LLMTranslate(
        api_key=cfg.OPENAI_API_KEY,
        model=cfg.OPENAI_MODEL,
        api_url=cfg.OPENAI_API_URL,
        temperature=cfg.TRANSLATE_TEMPERATURE,
        max_tokens=cfg.TRANSLATE_MAX_TOKENS,
        timeout=cfg.TRANSLATE_TIMEOUT_S,
    )
    libre = LibreTranslate(cfg.LIBRETRANSLATE_URL) if cfg.LIBRETRANSLATE_URL else None
    tts = GTTSService() if cfg.TTS_PROVIDER == "gtts" else GoogleTTSService()
    logger.info("services.ready model=%s tts=%s libre=%s", cfg.OPENAI_MODEL, cfg.TTS_PROVIDER, bool(libre))
    return StreamingOrchestrator(
        transcriber=GoogleTranscriber(open_timeout=cfg.STREAM_OPEN_TIMEOUT_S),
        translator=TranslatorOrchestrator(llm, libre),
        synthesizer=tts,
        default_source=cfg.DEFAULT_SOURCE_LANGUAGE,
        default_target=cfg.DEFAULT_TARGET_LANGUAGE,
        translate_timeout=cfg.TRANSLATE_TIMEOUT_S,
        tts_timeout=cfg.TTS_TIMEOUT_S,
        interim_results=cfg.TRANSLATE_INTERIM_RESULTS,
    )


async def handle_connection(websocket: WebSocket, orchestrator: StreamingOrchestrator) -> None:
    await websocket.accept()
    transport = SessionTransport(websocket)
    session = orchestrator.open_session(transport)
    try:
        while True:
            try:
                message = await transport.receive()
            except TransportError as e:
                logger.warning("transport.control.dropped sid=%s err=%s", session.id, e)
                continue
            if message is None:
                break
            if isinstance(message, AudioMessage):
                await orchestrator.on_audio_frame(session, message.data)
            else:
                orchestrator.on_language_change(session, message.source_language, message.target_language)
    finally:
        orchestrator.on_close(session)


def create_app(cfg: Optional[Settings] = None, orchestrator_factory: Optional[OrchestratorFactory] = None) -> FastAPI:
    cfg = cfg or settings
    factory = orchestrator_factory or build_orchestrator

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting up backend. port=%s tts=%s", cfg.PORT, cfg.TTS_PROVIDER)
        app.state.orchestrator = factory(cfg)
        yield
        await app.state.orchestrator.aclose()
        logger.info("Backend stopped.")

    app = FastAPI(title="CareTalk Real-Time Speech Translation", lifespan=lifespan)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    build_dir = Path(cfg.CLIENT_BUILD_DIR).resolve()

    @app.websocket("/")
    @app.websocket("/ws")
    async def translate_socket(websocket: WebSocket):
        await handle_connection(websocket, websocket.app.state.orchestrator)

    @app.get("/api/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(status="ok", message="caretalkai is healthy.")

    @app.get("/{full_path:path}", include_in_schema=False)
    async def client_app(full_path: str):
        # Static asset if it exists, otherwise the compiled entry page
        candidate = (build_dir / full_path).resolve()
        if full_path and candidate.is_file() and build_dir in candidate.parents:
            return FileResponse(candidate)
        index = build_dir / "index.html"
        if not index.is_file():
            raise HTTPException(status_code=404, detail="Client build not found")
        return FileResponse(index)

    return app


app = create_app()


def run() -> None:
    try:
        settings.validate()
    except ConfigError as e:
        logger.error("Error: %s", e)
        sys.exit(1)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
