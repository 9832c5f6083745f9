from .context_store import ContextChunk, ContextStore, ContextStoreError, RedisContextStore
from .llm import LLMClient, LLMError, OpenAIChatClient
from .market_data import MarketDataClient, SimulatedMarketDataClient

__all__ = [
    "ContextChunk",
    "ContextStore",
    "ContextStoreError",
    "LLMClient",
    "LLMError",
    "MarketDataClient",
    "OpenAIChatClient",
    "RedisContextStore",
    "SimulatedMarketDataClient",
]
