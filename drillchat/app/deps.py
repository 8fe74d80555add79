from __future__ import annotations
from functools import lru_cache
from ..config import settings
from ..context import PdfContextLoader, source_from_settings
from ..graph.graph import ConversationGateway
from ..graph.memory import SessionKVStore
from ..llm.openrouter_client import OfflineChatClient, OpenRouterClient

@lru_cache(maxsize=1)
def get_context_loader():
    return PdfContextLoader(source_from_settings(), ttl=settings.context_cache_ttl)

@lru_cache(maxsize=1)
def get_chat_client():
    if settings.dev_no_llm:
        return OfflineChatClient()
    return OpenRouterClient(settings)

@lru_cache(maxsize=1)
def get_store():
    return SessionKVStore(settings.persist_dir)

@lru_cache(maxsize=1)
def get_gateway():
    loader = get_context_loader()
    client = get_chat_client()  # offline stub when DEV_NO_LLM is set
    return ConversationGateway(loader, client, max_context_chars=settings.context_max_chars)
