import asyncio
import datetime
from typing import Any, Optional, final

import discord
import redis.asyncio
from discord.ext import commands
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from typing_extensions import override

from bottrapper import constants
from bottrapper.access import AccessControl, DatabaseStore, DiscordRegistrar
from bottrapper.command_tree import BotTrapperCommandTree
from bottrapper.log import get_logger
from bottrapper.utils.extensions import EXTENSIONS, walk_extensions


log = get_logger(__name__)


__all__ = ("BotTrapper",)


@final
class BotTrapper(commands.Bot):
    """
    Base bot instance.

    Owns the database engine, the optional redis session, and the access engine every command goes through.
    """

    name = constants.ClientCls.name

    def __init__(
        self,
        database_engine: AsyncEngine,
        redis_session: Optional[redis.asyncio.Redis] = None,
        **kwargs,
    ) -> None:
        kwargs.setdefault("tree_cls", BotTrapperCommandTree)
        super().__init__(**kwargs)

        self.db_engine = database_engine
        self.db_session = async_sessionmaker(database_engine, expire_on_commit=False, class_=AsyncSession)
        self.redis_session = redis_session

        self.access = self._create_access_control()
        self.start_time: datetime.datetime

    @property
    def db(self) -> async_sessionmaker[AsyncSession]:
        """Alias of `bot.db_session`."""
        return self.db_session

    def _create_access_control(self) -> AccessControl:
        store = DatabaseStore(
            self.db,
            statement_timeout=constants.Database.statement_timeout,
            default_features=constants.Access.default_features,
        )
        ttl = datetime.timedelta(seconds=constants.Access.cache_ttl)
        registrar = DiscordRegistrar(self)

        if constants.Access.cache_backend == "redis":
            if self.redis_session is None:
                msg = "ACCESS_CACHE_BACKEND is redis but no redis session was provided"
                raise RuntimeError(msg)
            log.info("Using redis for the access caches.")
            return AccessControl.with_redis_caches(
                store,
                session=self.redis_session,
                prefix=constants.Redis.prefix,
                ttl=ttl,
                registrar=registrar,
            )

        log.info("Using in-process access caches.")
        return AccessControl.with_memory_caches(store, ttl=ttl, registrar=registrar)

    @override
    async def setup_hook(self) -> None:
        """Load the extensions before connecting to the gateway."""
        self.start_time = discord.utils.utcnow()
        await self.load_extensions()

    async def load_extensions(self) -> None:
        """Load all extensions as released by walk_extensions()."""
        requested_extensions = constants.Client.requested_extensions
        partial_load = requested_extensions is not None
        if partial_load:
            log.warning("Not loading all extensions as per environment settings.")

        for ext, ext_metadata in walk_extensions():
            EXTENSIONS[ext] = ext_metadata
            if not partial_load:
                await self.load_extension(ext)
                continue

            if ext_metadata.core or ext in requested_extensions:
                if ext_metadata.core:
                    log.debug("Loading %r as it is a core extension.", ext)
                if ext in requested_extensions:
                    log.debug("Loading %r as it is a requested extension.", ext)
                await self.load_extension(ext)
                continue
            log.debug("SKIPPING loading %s as per environment variables.", ext)
        log.info("Completed loading extensions.")

    @override
    async def add_cog(self, cog: commands.Cog, /, *, override: bool = False, **kwargs: Any) -> None:
        """
        Delegate to super to register `cog`.

        This only serves to make the info log, so that extensions don't have to.
        """
        await super().add_cog(cog, override=override, **kwargs)
        log.info("Cog loaded: %s", cog.qualified_name)

    @override
    async def on_command_error(self, context: commands.Context, exception: commands.CommandError) -> None:
        """Reset the cooldown on user input errors, otherwise defer to the error handler."""
        if isinstance(exception, commands.UserInputError) and context.command:
            context.command.reset_cooldown(context)
        else:
            await super().on_command_error(context, exception)

    @override
    async def close(self, *, unplanned: bool = False) -> None:
        """Close sessions when bot is shutting down."""
        if not self.is_closed():
            await super().close()
        else:
            log.debug("Bot is already closed; skipping super().close()")

        if unplanned:
            log.warning("Bot is shutting down; closing sessions.")
        else:
            log.info("Bot is shutting down; closing sessions.")

        if self.db_engine:
            await self.db_engine.dispose()
            log.debug("Database engine disposed.")

        if self.redis_session:
            await self.redis_session.aclose(close_connection_pool=True)
            log.debug("Redis session closed.")

        await asyncio.sleep(0.6)
