# models/base.py
from datetime import datetime

from sqlalchemy import Column, DateTime, func
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
     """
     Base class for all SQLAlchemy models.
     Tables are named explicitly on each model to match the migrations.
     """


class CreatedAtMixin:
     """
     Creation timestamp in naive UTC, set by the application so it shares a
     clock with ``completed_at`` and the invoice reuse window. The server
     default only covers rows inserted outside the ORM.
     """
     created_at = Column(DateTime, default=datetime.utcnow, server_default=func.now(), nullable=False)
