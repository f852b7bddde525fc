"""create base tables

Revision ID: 3b1f0c2a9d41
Revises:
Create Date: 2026-10-12 18:04:51.210377

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b1f0c2a9d41"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "base_templates",
        sa.Column("template_id", sa.String(length=64), primary_key=True),
        sa.Column("base_type", sa.String(length=32), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("required_player_level", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("cost_gold", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_food", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_materials", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("health", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("defense", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("storage", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("production", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("build_time_seconds", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("base_type", "level", name="uq_base_templates_type_level"),
    )
    op.create_index("ix_base_templates_base_type", "base_templates", ["base_type"])

    op.create_table(
        "player_bases",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("player_id", sa.String(length=50), nullable=False),
        sa.Column("alliance_id", sa.String(length=50), nullable=True),
        sa.Column("base_type", sa.String(length=32), nullable=False),
        sa.Column("base_name", sa.String(length=100), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("x", sa.Integer(), nullable=False),
        sa.Column("y", sa.Integer(), nullable=False),
        sa.Column("map_section_id", sa.String(length=32), nullable=False),
        sa.Column("coordinate_hash", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("defense", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("storage", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("production", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_active_at", sa.DateTime(), nullable=False),
        sa.Column("build_completion_time", sa.DateTime(), nullable=True),
        sa.Column("last_moved_at", sa.DateTime(), nullable=True),
        sa.Column("arrival_time", sa.DateTime(), nullable=True),
        sa.Column("destroyed_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_player_bases_player_id", "player_bases", ["player_id"])
    op.create_index("ix_player_bases_coordinate_hash", "player_bases", ["coordinate_hash"])
    op.create_index("ix_player_bases_status", "player_bases", ["status"])
    op.create_index("ix_player_bases_section_hash", "player_bases", ["map_section_id", "coordinate_hash"])

    op.create_table(
        "base_upgrades",
        sa.Column("id", sa.String(length=80), primary_key=True),
        sa.Column("player_id", sa.String(length=50), nullable=False),
        sa.Column("base_id", sa.String(length=36), nullable=False),
        sa.Column("upgrade_type", sa.String(length=24), nullable=False),
        sa.Column("from_level", sa.Integer(), nullable=False),
        sa.Column("to_level", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("cost_gold", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_food", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_materials", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("time_seconds", sa.Integer(), nullable=False),
        sa.Column("gold_cost", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completion_time", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_base_upgrades_player_id", "base_upgrades", ["player_id"])
    op.create_index("ix_base_upgrades_base_id", "base_upgrades", ["base_id"])
    op.create_index("ix_base_upgrades_status", "base_upgrades", ["status"])
    op.create_index("ix_base_upgrades_completion_time", "base_upgrades", ["completion_time"])
    op.create_index("ix_base_upgrades_expires_at", "base_upgrades", ["expires_at"])

    op.create_table(
        "upgrade_slots",
        sa.Column("base_id", sa.String(length=36), primary_key=True),
        sa.Column("upgrade_id", sa.String(length=80), nullable=False),
        sa.Column("claimed_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "coordinate_claims",
        sa.Column("coordinate_hash", sa.String(length=32), primary_key=True),
        sa.Column("map_section_id", sa.String(length=32), nullable=False),
        sa.Column("x", sa.Integer(), nullable=False),
        sa.Column("y", sa.Integer(), nullable=False),
        sa.Column("base_id", sa.String(length=36), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False, server_default="occupied"),
        sa.Column("claimed_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_coordinate_claims_map_section_id", "coordinate_claims", ["map_section_id"])
    op.create_index("ix_coordinate_claims_base_id", "coordinate_claims", ["base_id"])

    op.create_table(
        "spawn_reservations",
        sa.Column("spawn_location_id", sa.String(length=64), primary_key=True),
        sa.Column("region", sa.String(length=16), nullable=False),
        sa.Column("x", sa.Integer(), nullable=False),
        sa.Column("y", sa.Integer(), nullable=False),
        sa.Column("coordinate_hash", sa.String(length=32), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("reserved_by", sa.String(length=50), nullable=True),
        sa.Column("reserved_at", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_spawn_reservations_coordinate_hash", "spawn_reservations", ["coordinate_hash"])
    op.create_index("ix_spawn_reservations_reserved_by", "spawn_reservations", ["reserved_by"])
    op.create_index("ix_spawn_reservations_expires_at", "spawn_reservations", ["expires_at"])

    op.create_table(
        "player_base_counters",
        sa.Column("player_id", sa.String(length=50), primary_key=True),
        sa.Column("base_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("player_base_counters")
    op.drop_index("ix_spawn_reservations_expires_at", table_name="spawn_reservations")
    op.drop_index("ix_spawn_reservations_reserved_by", table_name="spawn_reservations")
    op.drop_index("ix_spawn_reservations_coordinate_hash", table_name="spawn_reservations")
    op.drop_table("spawn_reservations")
    op.drop_index("ix_coordinate_claims_base_id", table_name="coordinate_claims")
    op.drop_index("ix_coordinate_claims_map_section_id", table_name="coordinate_claims")
    op.drop_table("coordinate_claims")
    op.drop_table("upgrade_slots")
    op.drop_index("ix_base_upgrades_expires_at", table_name="base_upgrades")
    op.drop_index("ix_base_upgrades_completion_time", table_name="base_upgrades")
    op.drop_index("ix_base_upgrades_status", table_name="base_upgrades")
    op.drop_index("ix_base_upgrades_base_id", table_name="base_upgrades")
    op.drop_index("ix_base_upgrades_player_id", table_name="base_upgrades")
    op.drop_table("base_upgrades")
    op.drop_index("ix_player_bases_section_hash", table_name="player_bases")
    op.drop_index("ix_player_bases_status", table_name="player_bases")
    op.drop_index("ix_player_bases_coordinate_hash", table_name="player_bases")
    op.drop_index("ix_player_bases_player_id", table_name="player_bases")
    op.drop_table("player_bases")
    op.drop_index("ix_base_templates_base_type", table_name="base_templates")
    op.drop_table("base_templates")
