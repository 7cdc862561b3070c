"""
LINE School Assistant - FastAPI Application
LLM Provider:
- If OPENAI_API_KEY is set: use OpenAI
- If no OPENAI_API_KEY: use Ollama (llama3.2) through its OpenAI-compatible API
Document store:
- If MONGO_URI is set: MongoDB
- Otherwise: in-memory store (development only)
"""

import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from loguru import logger

from .config import settings
from .agents.actions import build_default_registry
from .agents.dispatcher import Dispatcher
from .agents.reply_renderer import ReplyRenderer
from .api.webhook import router as webhook_router
from .interfaces.conversation_store import ConversationStore
from .interfaces.identity_store import IdentityResolver
from .interfaces.line_messaging import LineMessagingClient
from .interfaces.school_store import InMemorySchoolStore, MongoSchoolStore, SchoolStore
from .llm.intent_extractor import IntentExtractor
from .llm.model_client import OpenAIGenerationModel
from .llm.reply_phraser import ReplyPhraser
from .schemas.agent_schemas import HealthResponse
from . import __version__


# Configure logging
logger.remove()
logger.add(sys.stderr, level=settings.LOG_LEVEL)


def build_store() -> SchoolStore:
    if settings.MONGO_URI:
        return MongoSchoolStore(settings.MONGO_URI, settings.MONGO_DB)
    logger.warning("MONGO_URI not set, using in-memory school store")
    return InMemorySchoolStore()


# ============================================
# Application Lifespan
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire collaborators once; they are read-only afterwards"""
    logger.info("=" * 50)
    logger.info("Starting LINE School Assistant")
    logger.info("=" * 50)
    logger.info(f"Environment: {settings.API_ENV}")
    logger.info(f"LLM Provider: {settings.llm_provider}")
    logger.info(f"  Model: {settings.llm_model}")
    if not settings.use_openai:
        logger.info(f"  URL: {settings.OLLAMA_BASE_URL}")

    store = build_store()
    conversations = ConversationStore()
    model = OpenAIGenerationModel()
    registry = build_default_registry(store)

    app.state.store = store
    app.state.conversations = conversations
    app.state.registry = registry
    app.state.identity = IdentityResolver(store)
    app.state.line_client = LineMessagingClient()
    app.state.channel_secret = settings.LINE_CHANNEL_SECRET
    app.state.dispatcher = Dispatcher(
        registry=registry,
        extractor=IntentExtractor(registry, model),
        renderer=ReplyRenderer(),
        conversations=conversations,
        phraser=ReplyPhraser(model),
    )

    if not settings.LINE_CHANNEL_SECRET:
        logger.warning("LINE_CHANNEL_SECRET is missing, every webhook will be rejected")

    yield

    await conversations.close()
    logger.info("LINE School Assistant shutdown complete")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="LINE School Assistant",
    description="Natural-language LINE agent for room booking, repair tickets and the photo gallery.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(webhook_router)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Provider and store modes"""
    conversations = getattr(app.state, "conversations", None)
    store = getattr(app.state, "store", None)
    return HealthResponse(
        status="healthy",
        llm_provider=settings.llm_provider,
        llm_model=settings.llm_model,
        components={
            "document_store": "mongodb" if isinstance(store, MongoSchoolStore) else "memory",
            "conversation_store": conversations.mode if conversations else "unavailable",
            "actions": str(len(app.state.registry)) if hasattr(app.state, "registry") else "0",
        },
        timestamp=datetime.now(timezone.utc),
    )


# ============================================
# Main
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "line_agent.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_ENV == "development",
    )
