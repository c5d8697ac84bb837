import datetime

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import DeclarativeBase


# JSON works on both postgres and sqlite, which keeps the test suite on aiosqlite
JSONList = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def utcnow() -> datetime.datetime:
    """Return the current, timezone aware, UTC time."""
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    pass
