"""Add movies search indexes

Revision ID: 003
Revises: 002
Create Date: 2024-03-02 00:20:00.000000+00:00

GIN indexes backing GET /v1/movies:
    movies_title_idx   to_tsvector('simple', title), for the title full-text filter
    movies_genres_idx  genres, for the @> containment filter
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_index(
        "movies_title_idx",
        "movies",
        [sa.text("to_tsvector('simple', title)")],
        postgresql_using="gin",
    )
    op.create_index("movies_genres_idx", "movies", ["genres"], postgresql_using="gin")


def downgrade() -> None:
    op.drop_index("movies_genres_idx", table_name="movies")
    op.drop_index("movies_title_idx", table_name="movies")
