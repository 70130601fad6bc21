from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base


Base = declarative_base()


def utcnow() -> datetime:
    # naive UTC, matching the TIMESTAMP WITHOUT TIME ZONE columns
    return datetime.now(timezone.utc).replace(tzinfo=None)
