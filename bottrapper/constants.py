import enum
import sys
from typing import TYPE_CHECKING, Annotated, Any, ClassVar, Literal

import discord
import pydantic
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings
from pydantic_settings import SettingsConfigDict


__all__ = (  # noqa: RUF022
    "Client",
    "Monitoring",
    "Database",
    "Redis",
    "Access",
    "Colours",
    "Feature",
)


class BaseSettings(PydanticBaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class Feature(enum.Enum):
    """Per-guild features that gate both command execution and command registration."""

    TICKETS = "tickets"
    AUTORESPONSES = "autoresponses"
    STATISTICS = "statistics"
    AUTOROLES = "autoroles"
    WEBHOOKS = "webhooks"


ALL_FEATURES: frozenset[Feature] = frozenset(Feature)


class ClientCls(BaseSettings):
    name: ClassVar[str] = "BotTrapper"
    token: str = Field(validation_alias="BOT_TOKEN")
    default_command_prefix: str = Field("!", validation_alias="PREFIX")
    config_prefix: ClassVar[str] = "bottrapper"
    intents: ClassVar[discord.Intents] = discord.Intents.default() | discord.Intents(message_content=True)
    allowed_mentions: ClassVar[discord.AllowedMentions] = discord.AllowedMentions(
        everyone=False,
        roles=False,
        users=False,
        replied_user=True,
    )
    debug: bool = Field(False, validation_alias="BOT_DEBUG")
    test_guilds: Annotated[
        str | None,
        Field(
            description="Comma separated IDs of extra guilds to sync on startup, next to every joined guild.",
            validation_alias="TEST_GUILDS",
        ),
    ] = None
    extensions: str | None = Field(None, validation_alias="BOT_EXTENSIONS")

    @property
    def test_guild_ids(self) -> frozenset[int]:
        """Parse TEST_GUILDS into a set of guild IDs."""
        if not self.test_guilds:
            return frozenset()
        return frozenset(int(g.strip()) for g in self.test_guilds.split(",") if g.strip())

    @property
    def requested_extensions(self) -> set[str] | None:
        """Parse BOT_EXTENSIONS into a set of extension names, or None to load every extension."""
        if not self.extensions or self.extensions.lower() == "true":
            return None
        return {ext.strip() for ext in self.extensions.split(",") if ext.strip()}


class DatabaseCls(BaseSettings):
    bind: str = Field("sqlite+aiosqlite:///bottrapper.db", validation_alias="DB_BIND")
    create_tables: bool = Field(True, validation_alias="DB_CREATE_TABLES")
    connect_timeout: float = Field(2.0, validation_alias="DB_CONNECT_TIMEOUT")
    statement_timeout: float = Field(5.0, validation_alias="DB_STATEMENT_TIMEOUT")
    pool_size: int = Field(20, validation_alias="DB_POOL_SIZE")


class RedisCls(BaseSettings):
    uri: pydantic.RedisDsn = Field(validation_alias="REDIS_URI", default=pydantic.RedisDsn("redis://redis:6379"))
    use_fakeredis: bool = Field(validation_alias="USE_FAKEREDIS", default=False)
    prefix: ClassVar[str] = ClientCls.config_prefix + ":"


class AccessCls(BaseSettings):
    """Settings for the access control engine."""

    cache_ttl: int = Field(300, validation_alias="ACCESS_CACHE_TTL")
    cache_backend: Literal["memory", "redis"] = Field("memory", validation_alias="ACCESS_CACHE_BACKEND")
    default_features_raw: str | None = Field(None, validation_alias="ACCESS_DEFAULT_FEATURES")
    resync_retry_seconds: int = Field(300, validation_alias="ACCESS_RESYNC_RETRY_SECONDS")

    @field_validator("cache_backend", mode="before")
    @classmethod
    def parse_cache_backend(cls, v: str | None) -> str:
        """Normalise the backend name, falling back to the in-process cache."""
        if not v:
            return "memory"
        return v.strip().lower()

    @property
    def default_features(self) -> frozenset[Feature]:
        """The features a guild starts with when it has no stored configuration."""
        if self.default_features_raw is None:
            return ALL_FEATURES
        return frozenset(Feature(f.strip().lower()) for f in self.default_features_raw.split(",") if f.strip())


class MonitoringCls(BaseSettings):
    """Runtime monitoring configuration exposed via environment variables."""

    debug_logging: bool = Field(True, validation_alias="LOG_DEBUG")
    sentry_enabled: bool = Field(False, validation_alias="SENTRY_DSN")
    trace_loggers: str | None = Field(None, validation_alias="BOT_TRACE_LOGGERS")
    bot_log_mode: str = Field("dev", validation_alias="BOT_LOG_MODE")

    @property
    def log_mode(self) -> Literal["daily", "dev"]:
        """Return the log mode based on bot_log_mode."""
        return "daily" if (self.bot_log_mode or "").lower() == "daily" else "dev"

    @field_validator("sentry_enabled", mode="before")
    @classmethod
    def parse_sentry_enabled(cls, v: str | None) -> bool:
        """Sentry is enabled whenever a DSN is set."""
        return not (v is None or v == "")


class ColoursCls(BaseModel):
    soft_green: int = 0x68C290
    soft_orange: int = 0xF9CB54
    soft_red: int = 0xCD6D6D
    teal: int = 0x00AE86


LAZY_DEFINED = {
    "Client": ClientCls,
    "Database": DatabaseCls,
    "Redis": RedisCls,
    "Access": AccessCls,
    "Monitoring": MonitoringCls,
    "Colours": ColoursCls,
}

if TYPE_CHECKING:
    Client: ClientCls
    Database: DatabaseCls
    Redis: RedisCls
    Access: AccessCls
    Monitoring: MonitoringCls
    Colours: ColoursCls


## Use a lazy getattr pattern to allow for importing without defining all objects
def __getattr__(name: str) -> Any:
    if name in globals():
        return globals()[name]
    if name in LAZY_DEFINED:
        cls = LAZY_DEFINED[name]
        instance = cls()  # pyright: ignore[reportCallIssue]
        globals()[name] = instance
        return instance
    msg = f"module '{__name__}' has no attribute '{name}'"
    raise AttributeError(msg)


def validate_config() -> None:
    """Force initialization of all lazy defined configuration objects."""
    self = sys.modules[__name__]
    for name in LAZY_DEFINED:
        _ = getattr(self, name)
