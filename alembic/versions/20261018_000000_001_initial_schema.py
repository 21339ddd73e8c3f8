"""Initial schema: users, magazines, reservations, consents, processing logs, picture claims.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

reservation_status = sa.Enum(
    "pending", "confirmed", "cancelled", "completed", "expired", name="reservation_status"
)
delivery_method = sa.Enum("pickup", "shipping", name="delivery_method")
consent_type = sa.Enum("essential", "functional", "analytics", "marketing", name="consent_type")
processing_action = sa.Enum(
    "created",
    "updated",
    "accessed",
    "exported",
    "deleted",
    "consent_given",
    "consent_withdrawn",
    "reservation_created",
    "reservation_updated",
    "reservation_cancelled",
    name="processing_action",
)
processing_data_type = sa.Enum(
    "user_data", "reservation", "consent", "processing_log", name="processing_data_type"
)
legal_basis = sa.Enum(
    "consent", "contract", "legitimate_interest", "user_request", name="legal_basis"
)
picture_type = sa.Enum("group", "vorschul", name="picture_type")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    # Create users table
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("street", sa.String(200), nullable=True),
        sa.Column("house_number", sa.String(20), nullable=True),
        sa.Column("address_line2", sa.String(200), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("country", sa.String(2), nullable=True),
        sa.Column("consent_version", sa.String(10), nullable=False),
        sa.Column("consent_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("data_retention_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(
        op.f("ix_users_data_retention_until"), "users", ["data_retention_until"], unique=False
    )

    # Create magazines table
    op.create_table(
        "magazines",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("issue_number", sa.String(50), nullable=False),
        sa.Column("publish_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("total_copies", sa.Integer(), nullable=False),
        sa.Column("available_copies", sa.Integer(), nullable=False),
        sa.Column("cover_image_url", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_magazines")),
        sa.UniqueConstraint("title", "issue_number", name="uq_magazines_title_issue"),
        sa.CheckConstraint(
            "available_copies >= 0", name=op.f("ck_magazines_available_non_negative")
        ),
        sa.CheckConstraint(
            "available_copies <= total_copies", name=op.f("ck_magazines_available_le_total")
        ),
    )
    op.create_index(
        op.f("ix_magazines_publish_date"), "magazines", ["publish_date"], unique=False
    )

    # Create reservations table
    op.create_table(
        "reservations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("magazine_id", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", reservation_status, nullable=False, server_default="pending"),
        sa.Column("reservation_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("delivery_method", delivery_method, nullable=False, server_default="pickup"),
        sa.Column("pickup_location", sa.String(200), nullable=True),
        sa.Column("pickup_date", sa.Date(), nullable=True),
        sa.Column("shipping_street", sa.String(200), nullable=True),
        sa.Column("shipping_house_number", sa.String(20), nullable=True),
        sa.Column("shipping_address_line2", sa.String(200), nullable=True),
        sa.Column("shipping_postal_code", sa.String(20), nullable=True),
        sa.Column("shipping_city", sa.String(100), nullable=True),
        sa.Column("shipping_country", sa.String(2), nullable=True),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("order_group_picture", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("child_group_name", sa.String(100), nullable=True),
        sa.Column(
            "order_vorschul_picture", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "child_is_vorschueler", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("child_name", sa.String(200), nullable=True),
        sa.Column("consent_reference", sa.String(100), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_reservations")),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_reservations_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["magazine_id"],
            ["magazines.id"],
            name=op.f("fk_reservations_magazine_id_magazines"),
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint(
            "quantity > 0 AND quantity <= 5", name=op.f("ck_reservations_quantity_range")
        ),
    )
    op.create_index(op.f("ix_reservations_user_id"), "reservations", ["user_id"], unique=False)
    op.create_index(
        op.f("ix_reservations_magazine_id"), "reservations", ["magazine_id"], unique=False
    )
    op.create_index(
        "ix_reservations_status_expires", "reservations", ["status", "expires_at"], unique=False
    )

    # Create user_consents table
    op.create_table(
        "user_consents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("consent_type", consent_type, nullable=False),
        sa.Column("consent_given", sa.Boolean(), nullable=False),
        sa.Column("consent_version", sa.String(10), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("withdrawal_timestamp", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_user_consents")),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_user_consents_user_id_users"),
            ondelete="CASCADE",
        ),
    )
    op.create_index(op.f("ix_user_consents_user_id"), "user_consents", ["user_id"], unique=False)
    op.create_index(
        op.f("ix_user_consents_timestamp"), "user_consents", ["timestamp"], unique=False
    )
    op.create_index(
        "ix_user_consents_user_type", "user_consents", ["user_id", "consent_type"], unique=False
    )

    # Create data_processing_logs table
    op.create_table(
        "data_processing_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("action", processing_action, nullable=False),
        sa.Column("data_type", processing_data_type, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("legal_basis", legal_basis, nullable=False),
        sa.Column("processor_id", sa.String(100), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("details", postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_data_processing_logs")),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_data_processing_logs_user_id_users"),
            ondelete="SET NULL",
        ),
    )
    op.create_index(
        op.f("ix_data_processing_logs_user_id"), "data_processing_logs", ["user_id"], unique=False
    )
    op.create_index(
        op.f("ix_data_processing_logs_action"), "data_processing_logs", ["action"], unique=False
    )
    op.create_index(
        op.f("ix_data_processing_logs_timestamp"),
        "data_processing_logs",
        ["timestamp"],
        unique=False,
    )

    # Create picture_claims table
    op.create_table(
        "picture_claims",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("family_email", sa.String(255), nullable=False),
        sa.Column("group_name", sa.String(100), nullable=False),
        sa.Column("picture_type", picture_type, nullable=False),
        sa.Column("child_name", sa.String(200), nullable=False),
        sa.Column("reservation_id", sa.Uuid(), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_picture_claims")),
        sa.ForeignKeyConstraint(
            ["reservation_id"],
            ["reservations.id"],
            name=op.f("fk_picture_claims_reservation_id_reservations"),
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint(
            "family_email",
            "group_name",
            "picture_type",
            name="uq_picture_claims_family_group_type",
        ),
    )
    op.create_index(
        op.f("ix_picture_claims_family_email"), "picture_claims", ["family_email"], unique=False
    )
    op.create_index(
        op.f("ix_picture_claims_group_name"), "picture_claims", ["group_name"], unique=False
    )
    op.create_index(
        op.f("ix_picture_claims_reservation_id"),
        "picture_claims",
        ["reservation_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("picture_claims")
    op.drop_table("data_processing_logs")
    op.drop_table("user_consents")
    op.drop_table("reservations")
    op.drop_table("magazines")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        picture_type,
        legal_basis,
        processing_data_type,
        processing_action,
        consent_type,
        delivery_method,
        reservation_status,
    ):
        enum_type.drop(bind, checkfirst=True)
