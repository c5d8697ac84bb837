import asyncio
import logging
import signal
import sys
from typing import Any, Optional

import redis.asyncio
from discord.ext import commands
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from bottrapper import constants
from bottrapper.bot import BotTrapper
from bottrapper.database import Base


log = logging.getLogger(__name__)

try:
    import uvloop  # pyright: ignore[reportMissingImports]

    uvloop.install()
    log.info("Using uvloop as event loop.")
except ImportError:
    log.info("Using default asyncio event loop.")


def get_redis_session(*, use_fakeredis: bool = False) -> redis.asyncio.Redis:
    """Create the redis session, either fakeredis or a real one based on env vars."""
    if use_fakeredis:
        try:
            import fakeredis
            import fakeredis.aioredis
        except ImportError as e:
            msg = "fakeredis must be installed to use fake redis"
            raise RuntimeError(msg) from e
        redis_session = fakeredis.aioredis.FakeRedis.from_url(str(constants.Redis.uri))
    else:
        pool = redis.asyncio.BlockingConnectionPool.from_url(
            str(constants.Redis.uri),
            max_connections=20,
            timeout=300,
        )
        redis_session = redis.asyncio.Redis(connection_pool=pool)
    return redis_session


def get_database_engine() -> AsyncEngine:
    """Create the database engine with the configured connection timeouts."""
    url = make_url(constants.Database.bind)
    kwargs: dict[str, Any] = {
        "pool_pre_ping": True,
        "connect_args": {"timeout": constants.Database.connect_timeout},
    }
    if url.get_backend_name() == "postgresql":
        kwargs["pool_size"] = constants.Database.pool_size
        kwargs["pool_timeout"] = constants.Database.connect_timeout
    return create_async_engine(url, **kwargs)


async def main() -> None:
    """Create and run the bot."""
    constants.validate_config()

    redis_session: Optional[redis.asyncio.Redis] = None
    if constants.Access.cache_backend == "redis":
        if constants.Redis.use_fakeredis:
            log.warning("Using fakeredis for Redis session. This is not suitable for production use.")
        redis_session = get_redis_session(use_fakeredis=constants.Redis.use_fakeredis)
        # ping redis
        await redis_session.ping()
        log.debug("Successfully pinged redis server.")

    database_engine = get_database_engine()
    if constants.Database.create_tables:
        log.info("Creating any missing database tables.")
        async with database_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    else:
        log.info("Skipping table creation per environment settings.")
        # we still need to connect to the database to verify connection info is correct
        async with database_engine.connect():
            pass

    bot = BotTrapper(
        database_engine=database_engine,
        redis_session=redis_session,
        command_prefix=commands.when_mentioned_or(constants.Client.default_command_prefix),
        allowed_mentions=constants.Client.allowed_mentions,
        intents=constants.Client.intents,
    )

    loop = asyncio.get_running_loop()

    future: asyncio.Future = asyncio.ensure_future(bot.start(constants.Client.token), loop=loop)

    try:
        loop.add_signal_handler(signal.SIGINT, lambda: future.cancel())
        loop.add_signal_handler(signal.SIGTERM, lambda: future.cancel())
    except NotImplementedError:
        # Signal handlers are not implemented on some platforms (e.g., Windows)
        pass
    try:
        await future
    except asyncio.CancelledError:
        log.info("Received signal to terminate bot and event loop.")
    finally:
        if not bot.is_closed():
            await bot.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
