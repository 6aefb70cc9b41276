"""initial schema: users, coupons, audit_logs

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

ROLE_VALUES = ("admin", "manager", "marketer", "analyst")
COUPON_STATUS_VALUES = ("active", "inactive", "expired", "depleted")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column(
            "role",
            sa.Enum(*ROLE_VALUES, name="role_enum", create_constraint=True),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("coupon_id", sa.String(50), nullable=False, unique=True),
        sa.Column("coupon_code", sa.String(20), nullable=False),
        sa.Column("issued_date", sa.DateTime(), nullable=True),
        sa.Column("expiry_date", sa.DateTime(), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("usage_limit", sa.Integer(), nullable=False),
        sa.Column("redemption_count", sa.Integer(), nullable=False),
        sa.Column("applicable_items", sa.Text(), nullable=True),
        sa.Column("is_stackable", sa.Boolean(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                *COUPON_STATUS_VALUES,
                name="coupon_status_enum",
                create_constraint=True,
            ),
            nullable=False,
        ),
        sa.Column("campaign_source", sa.String(100), nullable=True),
        sa.Column(
            "created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_coupons_coupon_code", "coupons", ["coupon_code"], unique=True
    )
    op.create_index("ix_coupons_created_by", "coupons", ["created_by"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column("resource_kind", sa.String(50), nullable=False),
        sa.Column("resource_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("changes", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    for column in ("user_id", "resource_kind", "resource_id", "action", "created_at"):
        op.create_index(f"ix_audit_logs_{column}", "audit_logs", [column])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("ix_coupons_created_by", table_name="coupons")
    op.drop_index("ix_coupons_coupon_code", table_name="coupons")
    op.drop_table("coupons")
    op.drop_table("users")
    sa.Enum(name="coupon_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="role_enum").drop(op.get_bind(), checkfirst=True)
