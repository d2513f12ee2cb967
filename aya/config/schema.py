"""Configuration schema (pydantic)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from aya.chat.identity import decode_identity
from aya.errors import InvalidIdentityFormat


class Base(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AgentConfig(Base):
    """Who the runtime speaks as."""

    identity: str = "agent-0"
    name: str = "Aya"
    agent_id: str | None = None  # Memory agent id; derived from identity when unset

    @field_validator("identity")
    @classmethod
    def _check_identity(cls, v: str) -> str:
        try:
            return decode_identity(v).value
        except InvalidIdentityFormat as e:
            raise ValueError(str(e)) from e


class ApiConfig(Base):
    url: str = "https://api.agentcoin.fun"
    cookie: str = ""
    timeout: float = 20.0
    chain_id: int = 8453
    token_address: str | None = None  # Coin room to join, if any


class RetrievalConfig(Base):
    conversation_length: int = Field(default=32, ge=0)
    knowledge_limit: int = Field(default=5, ge=0)
    knowledge_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    memory_limit: int = Field(default=5, ge=0)
    memory_threshold: float = Field(default=0.5, ge=0.0, le=1.0)


class PipelineConfig(Base):
    max_continuations: int = Field(default=8, ge=1)
    persist_before_message_hook: bool = False
    serialize_per_channel: bool = True
    channel_queue_limit: int = Field(default=32, ge=1)
    builtin_actions: bool = True


class LLMConfig(Base):
    model: str = "openai/gpt-4o-mini"
    api_key: str | None = None
    api_base: str | None = None
    temperature: float = 0.7
    max_tokens: int = 1024
    timeout: float = 45.0
    fallback_models: list[str] = Field(default_factory=list)
    embedding_model: str = "openai/text-embedding-3-small"  # "chroma/default" for the bundled local model


class StorageConfig(Base):
    memory_dir: str | None = None   # JSONL memories; in-memory only when unset
    chroma_path: str | None = None  # Persistent vector index; ephemeral when unset


class AyaConfig(BaseSettings):
    """Root config.

    Every field can be set from the environment with the ``AYA_`` prefix and
    ``__`` between sections, e.g. ``AYA_PIPELINE__MAX_CONTINUATIONS=3`` or
    ``AYA_LLM__FALLBACK_MODELS='["openai/gpt-4o"]'``. Environment values win
    over the config file.
    """

    model_config = SettingsConfigDict(
        env_prefix="AYA_",
        env_nested_delimiter="__",
        populate_by_name=True,
        extra="ignore",
    )

    agent: AgentConfig = Field(default_factory=AgentConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # File values arrive as init kwargs; the environment overrides them
        return env_settings, init_settings, dotenv_settings, file_secret_settings
