"""Application settings loaded from environment / .env / config.json."""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from docindex.core.exceptions import ConfigurationError

DEFAULT_EXTENSIONS = [".txt", ".md", ".pdf", ".docx", ".pptx"]
DEFAULT_EXCLUDES = ["**/node_modules/**", "**/.git/**", "**/.*"]


class LocalSourceSettings(BaseModel):
    enabled: bool = True
    watch_paths: list[str] = Field(default_factory=list)
    file_extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDES))

    # Live watcher
    watch: bool = True
    debounce_seconds: float = 2.0

    def normalized_extensions(self) -> set[str]:
        """Lower-cased extensions, each with a leading dot."""
        return {
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.file_extensions
        }


class FeishuSettings(BaseModel):
    enabled: bool = False
    app_id: str = ""
    app_secret: str = ""
    base_url: str = "https://open.feishu.cn/open-apis"
    document_ids: list[str] = Field(default_factory=list)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        json_file="config.json",
        extra="ignore",
    )

    # ── Sources ───────────────────────────────────────────
    local: LocalSourceSettings = Field(default_factory=LocalSourceSettings)
    feishu: FeishuSettings = Field(default_factory=FeishuSettings)

    # ── Database ──────────────────────────────────────────
    database_path: str = "data/knowledge.db"

    # ── Logging ───────────────────────────────────────────
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # config.json sits below the environment so deployments can override it
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def validate_local(self) -> None:
        """Reject a local source that is enabled but cannot match anything."""
        if not self.local.enabled:
            return
        if not self.local.watch_paths:
            raise ConfigurationError("local source is enabled but no watch_paths are configured")
        if not self.local.file_extensions:
            raise ConfigurationError("local source is enabled but no file_extensions are configured")


@lru_cache
def get_settings() -> Settings:
    return Settings()
