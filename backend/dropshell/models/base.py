"""SQLAlchemy declarative base and shared mixins."""
from datetime import datetime
from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class TimestampMixin:
    """Adds created_at. Set by the application so expiry arithmetic uses the same instant."""
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
