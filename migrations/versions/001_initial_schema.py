"""Service tier reference data.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── service_tiers ─────────────────────────────────────────────────
    op.create_table(
        "service_tiers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "service",
            sa.Enum("TRANSPORT", "DELIVERY", "ERRAND", "PARCEL", name="servicetype"),
            nullable=False,
        ),
        sa.Column("name", sa.String(80), nullable=False),
        sa.Column(
            "vehicle_type",
            sa.Enum("CAR", "MOTORCYCLE", "VAN", name="vehicletype"),
            nullable=True,
        ),
        sa.Column("base_fare", sa.Float, nullable=False),
        sa.Column("per_km_rate", sa.Float, nullable=False),
        sa.Column("per_minute_rate", sa.Float, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_service_tiers_service", "service_tiers", ["service", "is_active"]
    )


def downgrade() -> None:
    op.drop_index("idx_service_tiers_service", table_name="service_tiers")
    op.drop_table("service_tiers")
    sa.Enum(name="vehicletype").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="servicetype").drop(op.get_bind(), checkfirst=True)
