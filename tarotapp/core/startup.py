# tarotapp/core/startup.py
import logging
from datetime import timedelta
from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI
from google import genai
from redis.asyncio import Redis

from tarotapp.core.config import load_gemini_api_key, settings
from tarotapp.data.database import AsyncSessionLocal, create_tables
from tarotapp.data.tarot import load_tarot_data
from tarotapp.services.database.document_database_services import SqlDocumentStore
from tarotapp.services.llm.llm_services import GeminiCompletionService
from tarotapp.services.session_services import SessionRegistry
from tarotapp.services.tarot_services import ReadingGenerator

logger = logging.getLogger(__name__)

redis_client_instance: Optional[Redis] = None
llm_clients = {}
session_registry: Optional[SessionRegistry] = None


async def startup_event(app: FastAPI):
    """
    Initialize resources on application startup.
    """
    global redis_client_instance
    global session_registry

    try:
        load_tarot_data(settings.TAROT_DATA_PATH)

        await create_tables()
        logger.info("Document table ready.")

        api_key = load_gemini_api_key()
        if api_key:
            llm_clients["gemini"] = genai.Client(api_key=api_key)
        else:
            logger.warning("Starting without a Gemini client; readings will fail until a key is configured.")

        redis_client_instance = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)

        generator = ReadingGenerator(
            GeminiCompletionService(llm_clients.get("gemini")),
            model=settings.LLM_MODEL,
            temperature=settings.LLM_TEMPERATURE,
            language=settings.DEFAULT_LANGUAGE,
            timeout=settings.COMPLETION_TIMEOUT_SECONDS,
        )
        session_registry = SessionRegistry(
            SqlDocumentStore(AsyncSessionLocal),
            redis_client_instance,
            generator,
            collection=settings.USERS_COLLECTION,
            timeout=settings.REMOTE_TIMEOUT_SECONDS,
            session_expiry=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )
        logger.info("Session registry initialized successfully.")

    except Exception as e:
        logger.error(f"Failed to startup: {e}")
        raise


async def shutdown_event(app: FastAPI):
    global redis_client_instance

    if redis_client_instance is not None:
        await redis_client_instance.aclose()
        redis_client_instance = None
