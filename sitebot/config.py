"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Sitebot configuration. All values come from environment variables."""

    # OpenRouter
    openrouter_api_key: str = Field(default="")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")
    model: str = Field(default="openai/gpt-4o-mini")
    http_referer: str = Field(default="http://localhost:3000")

    # Model call behaviour
    llm_timeout_seconds: float = Field(default=60.0)
    llm_max_attempts: int = Field(default=3)
    llm_retry_base_delay: float = Field(default=1.0)
    llm_retry_max_delay: float = Field(default=5.0)
    temperature: float = Field(default=0.7)
    max_tokens: int = Field(default=4000)
    max_tool_iterations: int = Field(default=10)

    # Site
    site_name: str = Field(default="VSF Technology")
    site_base_url: str = Field(default="https://www.vsf.technology/")
    sitemap_dir: Path = Field(default=Path("www.vsf.technology"))
    sitemap_files: str = Field(
        default="page-sitemap.xml,post-sitemap.xml,reseller_product-sitemap.xml"
    )

    # Prompt override (empty uses the built-in prompt)
    system_prompt: str = Field(default="")

    # Conversation
    conversation_window_size: int = Field(default=10)
    session_idle_timeout_seconds: float = Field(default=3600.0)

    # Page fetching
    fetch_timeout_seconds: float = Field(default=10.0)
    fetch_max_concurrent: int = Field(default=3)
    fetch_max_urls: int = Field(default=3)
    max_content_chars: int = Field(default=3000)
    fetch_cache_max_entries: int = Field(default=0)

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    static_dir: Path = Field(default=Path("public"))

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_sitemap_files(self) -> list[str]:
        """Parse SITEMAP_FILES into a list of file names."""
        if not self.sitemap_files.strip():
            return []
        return [name.strip() for name in self.sitemap_files.split(",") if name.strip()]


settings = Settings()
