"""
Configuration

Credentials and deployment knobs come from the environment (or .env).
Index, namespace and model identifiers are fixed.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from bible_api.errors import ConfigurationError

# Load environment variables
load_dotenv()

# LangSmith setup (optional)
os.environ["LANGCHAIN_TRACING_V2"] = "true" if os.getenv("LANGCHAIN_API_KEY") else "false"
os.environ.setdefault("LANGCHAIN_PROJECT", "bible-search-api")

# Pinecone settings
INDEX_NAME = "bible-verses"
NAMESPACE = "kjv"
EMBEDDING_DIMENSION = 1536

# OpenAI settings
EMBEDDING_MODEL = "text-embedding-3-small"
LLM_MODEL = "gpt-4.1-mini-2025-04-14"

# Generation budgets
QUERY_TEMPERATURE = 0.7
QUERY_MAX_TOKENS = 300
PRAYER_TEMPERATURE = 0.8  # Higher temperature for more creative prayers
PRAYER_MAX_TOKENS = 250

# Retrieval settings
QUERY_TOP_K = 5
PRAYER_TOP_K = 10

DEFAULT_BIBLE_DATA_PATH = os.path.join("data", "bible-data.json")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "8080"))


@dataclass(frozen=True)
class Settings:
    openai_api_key: str
    pinecone_api_key: str
    pinecone_index_host: Optional[str] = None
    bible_data_path: str = DEFAULT_BIBLE_DATA_PATH


def load_settings() -> Settings:
    """Read settings from the environment, failing if a credential is absent"""
    openai_api_key = os.getenv("OPENAI_API_KEY", "")
    pinecone_api_key = os.getenv("PINECONE_API_KEY", "")

    missing = [
        name
        for name, value in (
            ("OPENAI_API_KEY", openai_api_key),
            ("PINECONE_API_KEY", pinecone_api_key),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    return Settings(
        openai_api_key=openai_api_key,
        pinecone_api_key=pinecone_api_key,
        pinecone_index_host=os.getenv("PINECONE_INDEX_HOST") or None,
        bible_data_path=os.getenv("BIBLE_DATA_PATH", DEFAULT_BIBLE_DATA_PATH),
    )
