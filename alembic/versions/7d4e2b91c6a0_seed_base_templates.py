"""seed base templates

Revision ID: 7d4e2b91c6a0
Revises: 3b1f0c2a9d41
Create Date: 2026-10-12 18:21:07.884512

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from gamebase.game.templates import BASE_TYPES, all_template_rows


# revision identifiers, used by Alembic.
revision: str = "7d4e2b91c6a0"
down_revision: Union[str, Sequence[str], None] = "3b1f0c2a9d41"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


base_templates = sa.table(
    "base_templates",
    sa.column("template_id", sa.String),
    sa.column("base_type", sa.String),
    sa.column("level", sa.Integer),
    sa.column("required_player_level", sa.Integer),
    sa.column("cost_gold", sa.Integer),
    sa.column("cost_food", sa.Integer),
    sa.column("cost_materials", sa.Integer),
    sa.column("health", sa.Integer),
    sa.column("defense", sa.Integer),
    sa.column("storage", sa.Integer),
    sa.column("production", sa.Integer),
    sa.column("build_time_seconds", sa.Integer),
)


def upgrade() -> None:
    # Fresh table from the previous revision, so a plain bulk insert is enough
    op.bulk_insert(base_templates, all_template_rows())


def downgrade() -> None:
    op.execute(base_templates.delete().where(base_templates.c.base_type.in_(BASE_TYPES)))
