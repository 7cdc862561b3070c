"""
LINE Agent Configuration
Loads settings from environment variables
"""

import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment"""

    # OpenAI Configuration
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Ollama Configuration (used when no OpenAI key is set)
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "llama3.2")

    # Generation settings
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.3"))
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "1024"))
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))

    # Domain handler settings
    HANDLER_TIMEOUT_SECONDS: float = float(os.getenv("HANDLER_TIMEOUT_SECONDS", "10"))

    # All relative dates are resolved in this timezone
    TIMEZONE: str = os.getenv("TIMEZONE", "Asia/Bangkok")

    # LINE Messaging API
    LINE_CHANNEL_SECRET: str = os.getenv("LINE_CHANNEL_SECRET", "")
    LINE_CHANNEL_ACCESS_TOKEN: str = os.getenv("LINE_CHANNEL_ACCESS_TOKEN", "")
    LINE_API_BASE: str = os.getenv("LINE_API_BASE", "https://api.line.me")
    LINE_DATA_API_BASE: str = os.getenv("LINE_DATA_API_BASE", "https://api-data.line.me")
    LINE_REPLY_MAX_CHARS: int = int(os.getenv("LINE_REPLY_MAX_CHARS", "5000"))
    LINE_HTTP_TIMEOUT_SECONDS: float = float(os.getenv("LINE_HTTP_TIMEOUT_SECONDS", "10"))

    # Redis Configuration (conversation memory)
    USE_REDIS: bool = _env_bool("USE_REDIS", "true")
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    CONTEXT_EXPIRY_MINUTES: int = int(os.getenv("CONTEXT_EXPIRY_MINUTES", "30"))
    MAX_CONTEXT_MESSAGES: int = int(os.getenv("MAX_CONTEXT_MESSAGES", "10"))

    # MongoDB Configuration (school document store)
    MONGO_URI: str = os.getenv("MONGO_URI", "")
    MONGO_DB: str = os.getenv("MONGO_DB", "crms6")

    # Web application links shown in replies
    WEB_APP_URL: str = os.getenv("WEB_APP_URL", "https://crms6it.vercel.app")

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_ENV: str = os.getenv("API_ENV", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def use_openai(self) -> bool:
        """OpenAI is used only with a real key"""
        return bool(self.OPENAI_API_KEY) and not self.OPENAI_API_KEY.startswith("sk-your")

    @property
    def llm_provider(self) -> str:
        return "openai" if self.use_openai else "ollama"

    @property
    def llm_model(self) -> str:
        return self.OPENAI_MODEL if self.use_openai else self.OLLAMA_MODEL

    @property
    def llm_base_url(self) -> Optional[str]:
        """Base URL for the OpenAI SDK; None means api.openai.com"""
        if self.use_openai:
            return None
        return f"{self.OLLAMA_BASE_URL.rstrip('/')}/v1"

    @property
    def redis_url(self) -> str:
        """Get Redis connection URL"""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


# Global settings instance
settings = Settings()
