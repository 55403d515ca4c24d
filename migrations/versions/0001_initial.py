from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    op.create_table(
        "parks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("address", sa.String()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("park_id", sa.Integer(), sa.ForeignKey("parks.id")),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("location", sa.String()),
        sa.Column("start_date", sa.DateTime(timezone=True)),
        sa.Column("start_time", sa.String()),
        sa.Column("capacity", sa.Integer()),
        sa.Column("is_free", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("is_price_random", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("price", sa.Numeric(10, 2)),
        sa.Column("min_price", sa.Numeric(10, 2)),
        sa.Column("max_price", sa.Numeric(10, 2)),
        sa.Column("discount_seniors", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_students", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_families", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_disability", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_early_bird", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_early_bird_deadline", sa.DateTime(timezone=True)),
        sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_table(
        "activity_registrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("activity_id", sa.Integer(), sa.ForeignKey("activities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("age", sa.Integer()),
        sa.Column("emergency_contact", sa.String(100)),
        sa.Column("emergency_phone", sa.String(20)),
        sa.Column("medical_conditions", sa.Text()),
        sa.Column("special_requests", sa.Text()),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("stripe_payment_intent_id", sa.String(100)),
        sa.Column("stripe_customer_id", sa.String(100)),
        sa.Column("paid_amount", sa.Numeric(10, 2)),
        sa.Column("payment_date", sa.DateTime(timezone=True)),
        sa.Column("applied_discount_type", sa.String(50)),
        sa.Column("applied_discount_percentage", sa.Integer()),
        sa.Column("original_amount", sa.Numeric(10, 2)),
        sa.Column("discount_amount", sa.Numeric(10, 2)),
        sa.Column("accepts_terms", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("registration_source", sa.String(50), nullable=False, server_default="web"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.UniqueConstraint("stripe_payment_intent_id", name="uq_activity_registrations_payment_intent"),
    )
    op.create_index("ix_activity_registrations_activity_id", "activity_registrations", ["activity_id"])
    op.create_index("ix_activity_registrations_email", "activity_registrations", ["email"])
    op.create_table(
        "activity_registration_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "registration_id",
            sa.Integer(),
            sa.ForeignKey("activity_registrations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("change_type", sa.String(50), nullable=False),
        sa.Column("previous_status", sa.String(20)),
        sa.Column("new_status", sa.String(20)),
        sa.Column("change_reason", sa.Text()),
        sa.Column("change_details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_table(
        "email_queue",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("to", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(500), nullable=False),
        sa.Column("html_content", sa.Text(), nullable=False),
        sa.Column("text_content", sa.Text()),
        sa.Column("template_id", sa.Integer()),
        sa.Column("priority", sa.String(20), nullable=False, server_default="normal"),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("sent_at", sa.DateTime(timezone=True)),
        sa.Column("error_message", sa.Text()),
        sa.Column("metadata", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_index("ix_email_queue_status", "email_queue", ["status"])


def downgrade() -> None:
    op.drop_index("ix_email_queue_status", table_name="email_queue")
    op.drop_table("email_queue")
    op.drop_table("activity_registration_history")
    op.drop_index("ix_activity_registrations_email", table_name="activity_registrations")
    op.drop_index("ix_activity_registrations_activity_id", table_name="activity_registrations")
    op.drop_table("activity_registrations")
    op.drop_table("activities")
    op.drop_table("parks")
