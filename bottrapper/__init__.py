try:
    import dotenv
except ModuleNotFoundError:
    pass
else:
    if dotenv.find_dotenv(usecwd=True):
        print("Found .env file, loading environment variables from it.")  # noqa: T201
        dotenv.load_dotenv(dotenv.find_dotenv(usecwd=True), override=True)


import asyncio
import logging
import os

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

####################
# NOTE: do not import any other modules before the `log.setup()` call
####################
from bottrapper import log


sentry_logging = LoggingIntegration(
    level=5,  # this is the same as logging.TRACE
    event_level=logging.WARNING,
)

sentry_sdk.init(
    dsn=os.environ.get("SENTRY_DSN"),
    integrations=[sentry_logging],
    release=f"bottrapper@{os.environ.get('GIT_SHA', 'dev')}",
)

log.setup()


# On Windows, the selector event loop is required for aiodns.
if os.name == "nt":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
