from datetime import datetime, timezone

import sqlalchemy
from sqlalchemy import Column, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(Base):
    __abstract__ = True
    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    created_at = Column(sqlalchemy.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(
        sqlalchemy.DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

# Do not import models here; init_db() imports them before create_all.
