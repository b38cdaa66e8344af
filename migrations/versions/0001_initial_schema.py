from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.sql import expression

revision = "0001_initial_schema"
down_revision = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    member_list_enum = sa.Enum("administrators", "trainers", name="memberlist")
    member_status_enum = sa.Enum("invited", "active", name="memberstatus")

    bind = op.get_bind()
    member_list_enum.create(bind, checkfirst=True)
    member_status_enum.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column(
            "email_verified",
            sa.Boolean(),
            nullable=False,
            server_default=expression.false(),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_expires_at", "users", ["expires_at"], unique=False)

    op.create_table(
        "user_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
    )
    op.create_index(
        "ix_user_sessions_user_id", "user_sessions", ["user_id"], unique=False
    )

    op.create_table(
        "training_organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        _created_at(),
    )

    op.create_table(
        "organization_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Integer(),
            sa.ForeignKey("training_organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("member_list", member_list_enum, nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("status", member_status_enum, nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("invitation_token", sa.String(), nullable=True),
        sa.Column("invitation_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "organization_id",
            "member_list",
            "email",
            name="uq_organization_members_list_email",
        ),
    )
    op.create_index(
        "ix_organization_members_organization_id",
        "organization_members",
        ["organization_id"],
        unique=False,
    )
    op.create_index(
        "ix_organization_members_user_id",
        "organization_members",
        ["user_id"],
        unique=False,
    )

    op.create_table(
        "admin_invitations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("token_hash", sa.String(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("invited_by", sa.String(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_admin_invitations_email", "admin_invitations", ["email"], unique=False
    )

    op.create_table(
        "invitations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column(
            "super_admin",
            sa.Boolean(),
            nullable=False,
            server_default=expression.false(),
        ),
        _created_at(),
    )
    op.create_index("ix_invitations_email", "invitations", ["email"], unique=True)

    op.create_table(
        "invitation_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "invitation_id",
            sa.Integer(),
            sa.ForeignKey("invitations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(), nullable=False),
        _created_at(),
    )
    op.create_index(
        "ix_invitation_tokens_invitation_id",
        "invitation_tokens",
        ["invitation_id"],
        unique=False,
    )

    op.create_table(
        "invitation_grants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "invitation_id",
            sa.Integer(),
            sa.ForeignKey("invitations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("member_list", member_list_enum, nullable=False),
        sa.Column("organization_id", sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            "invitation_id",
            "member_list",
            "organization_id",
            name="uq_invitation_grants_scope",
        ),
    )
    op.create_index(
        "ix_invitation_grants_invitation_id",
        "invitation_grants",
        ["invitation_id"],
        unique=False,
    )
    op.create_index(
        "ix_invitation_grants_organization_id",
        "invitation_grants",
        ["organization_id"],
        unique=False,
    )

    op.create_table(
        "trainings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("timezone", sa.String(), nullable=False),
        sa.Column("start_date_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("training_organization_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column(
            "participant_count",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("trainer_ids", sa.JSON(), nullable=False),
        _created_at(),
    )
    op.create_index(
        "ix_trainings_training_organization_id",
        "trainings",
        ["training_organization_id"],
        unique=False,
    )

    op.create_table(
        "training_trainees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "training_id",
            sa.Integer(),
            sa.ForeignKey("trainings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("password", sa.String(), nullable=False),
        sa.Column(
            "has_logged_in",
            sa.Boolean(),
            nullable=False,
            server_default=expression.false(),
        ),
    )
    op.create_index(
        "ix_training_trainees_username",
        "training_trainees",
        ["username"],
        unique=False,
    )
    op.create_index(
        "ix_training_trainees_training_position",
        "training_trainees",
        ["training_id", "position"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_training_trainees_training_position", table_name="training_trainees")
    op.drop_index("ix_training_trainees_username", table_name="training_trainees")
    op.drop_table("training_trainees")
    op.drop_index("ix_trainings_training_organization_id", table_name="trainings")
    op.drop_table("trainings")
    op.drop_index("ix_invitation_grants_organization_id", table_name="invitation_grants")
    op.drop_index("ix_invitation_grants_invitation_id", table_name="invitation_grants")
    op.drop_table("invitation_grants")
    op.drop_index("ix_invitation_tokens_invitation_id", table_name="invitation_tokens")
    op.drop_table("invitation_tokens")
    op.drop_index("ix_invitations_email", table_name="invitations")
    op.drop_table("invitations")
    op.drop_index("ix_admin_invitations_email", table_name="admin_invitations")
    op.drop_table("admin_invitations")
    op.drop_index("ix_organization_members_user_id", table_name="organization_members")
    op.drop_index(
        "ix_organization_members_organization_id", table_name="organization_members"
    )
    op.drop_table("organization_members")
    op.drop_table("training_organizations")
    op.drop_index("ix_user_sessions_user_id", table_name="user_sessions")
    op.drop_table("user_sessions")
    op.drop_index("ix_users_expires_at", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    sa.Enum(name="memberstatus").drop(bind, checkfirst=True)
    sa.Enum(name="memberlist").drop(bind, checkfirst=True)
