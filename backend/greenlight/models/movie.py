"""
Greenlight — Movie SQLAlchemy Model
====================================

What:  ORM model for the ``movies`` table in PostgreSQL.
Who:   Used by MovieService for CRUD and by Alembic for autogenerate.

Table Design:
    - id BIGSERIAL:       exposed in URLs (/v1/movies/{id})
    - created_at:         server-assigned, never serialized to clients
    - runtime:            minutes as an integer; rendered as "<n> mins" by the schema layer
    - genres TEXT[]:      queried with the array containment operator (@>)
    - version:            optimistic-lock counter, starts at 1, +1 on every update

    Check constraints and the GIN indexes (full-text title search, genre
    containment) are created by migrations 002 and 003.
"""

from datetime import datetime
from typing import List

from sqlalchemy import BigInteger, Index, Integer, Text, text
from sqlalchemy.dialects.postgresql import ARRAY, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from greenlight.database import Base


class Movie(Base):
    """
    A movie record.

    Query Patterns:
        - Show:   SELECT ... WHERE id = :id
        - Update: UPDATE ... WHERE id = :id AND version = :version RETURNING version
        - List:   full-text match on title, @> on genres, safelisted ORDER BY,
                  LIMIT/OFFSET, count(*) OVER() for total_records
    """

    __tablename__ = "movies"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    runtime: Mapped[int] = mapped_column(Integer, nullable=False)
    genres: Mapped[List[str]] = mapped_column(ARRAY(Text), nullable=False)

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )

    __table_args__ = (
        Index("movies_genres_idx", "genres", postgresql_using="gin"),
    )

    # created_at is a server default; fetch it in the INSERT's RETURNING clause
    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, title='{self.title}', version={self.version})>"
