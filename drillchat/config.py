"""
config.py
-----------
Typed configuration loader for environment variables, pathing, and constants.
This centralizes settings so other modules can import a single authoritative source.
"""
from __future__ import annotations
import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


class Settings(BaseModel):
    openrouter_api_key: str = Field(default_factory=lambda: os.getenv("OPENROUTER_API_KEY", ""))
    openrouter_url: str = Field(
        default_factory=lambda: os.getenv("OPENROUTER_URL", "https://openrouter.ai/api/v1/chat/completions")
    )
    openrouter_model: str = Field(
        default_factory=lambda: os.getenv("OPENROUTER_MODEL", "nvidia/llama-3.1-nemotron-70b-instruct:free")
    )
    openrouter_max_tokens: int = Field(default_factory=lambda: int(os.getenv("OPENROUTER_MAX_TOKENS", "4096")))
    # None means the upstream call may block indefinitely
    openrouter_timeout: Optional[float] = Field(default_factory=lambda: _env_float("OPENROUTER_TIMEOUT_SECONDS"))
    site_url: str = Field(default_factory=lambda: os.getenv("SITE_URL", "http://localhost:3000"))
    site_name: str = Field(default_factory=lambda: os.getenv("SITE_NAME", "Drilling Assistant"))

    context_json_path: str = Field(default_factory=lambda: os.getenv("CONTEXT_JSON_PATH", "./data/pdf-content.json"))
    context_pdf_path: str = Field(default_factory=lambda: os.getenv("CONTEXT_PDF_PATH", ""))
    context_max_chars: int = Field(default_factory=lambda: int(os.getenv("CONTEXT_MAX_CHARS", "8000")))
    context_cache_ttl: float = Field(default_factory=lambda: float(os.getenv("CONTEXT_CACHE_TTL_SECONDS", "600")))

    persist_dir: str = Field(default_factory=lambda: os.getenv("PERSIST_DIR", "./data/sessions"))
    log_dir: str = Field(default_factory=lambda: os.getenv("LOG_DIR", "./logs"))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_to_file: bool = Field(default_factory=lambda: _env_bool("LOG_TO_FILE"))
    logging_app_name: str = "drillchat"

    dev_no_llm: bool = Field(default_factory=lambda: _env_bool("DEV_NO_LLM"))
    host: str = Field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "8000")))

    def ensure_dirs(self) -> None:
        Path(self.persist_dir).mkdir(parents=True, exist_ok=True)
        if self.log_to_file:
            Path(self.log_dir).mkdir(parents=True, exist_ok=True)

settings = Settings()
settings.ensure_dirs()
