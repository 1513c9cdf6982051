"""Add movies check constraints

Revision ID: 002
Revises: 001
Create Date: 2024-03-02 00:10:00.000000+00:00

Database-level counterparts of the validate_movie rules.
"""

from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_check_constraint("movies_runtime_check", "movies", "runtime >= 0")
    op.create_check_constraint(
        "movies_year_check",
        "movies",
        "year BETWEEN 1888 AND date_part('year', now())",
    )
    op.create_check_constraint(
        "genres_length_check",
        "movies",
        "array_length(genres, 1) BETWEEN 1 AND 5",
    )


def downgrade() -> None:
    op.drop_constraint("genres_length_check", "movies", type_="check")
    op.drop_constraint("movies_year_check", "movies", type_="check")
    op.drop_constraint("movies_runtime_check", "movies", type_="check")
