"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

json_type = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _id() -> sa.Column:
  return sa.Column("id", sa.String(36), primary_key=True)


def _fk(name: str, target: str, *, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
  return sa.Column(name, sa.String(36), sa.ForeignKey(f"{target}.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
  op.create_table(
    "users",
    _id(),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("password_hash", sa.String(), nullable=False),
    sa.Column("avatar_url", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "sessions",
    _id(),
    _fk("user_id", "users"),
    sa.Column("created_ip", sa.String(), nullable=True),
    sa.Column("user_agent", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_sessions_user_id", "sessions", ["user_id"], unique=False)

  op.create_table(
    "workspaces",
    _id(),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )

  op.create_table(
    "workspace_members",
    _id(),
    _fk("workspace_id", "workspaces"),
    _fk("user_id", "users"),
    sa.Column("role", sa.String(), nullable=False),
    sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("user_id", "workspace_id", name="ux_workspace_member_user_workspace"),
  )
  op.create_index("ix_workspace_members_workspace_id", "workspace_members", ["workspace_id"], unique=False)
  op.create_index("ix_workspace_members_user_id", "workspace_members", ["user_id"], unique=False)

  op.create_table(
    "workspace_invitations",
    _id(),
    _fk("workspace_id", "workspaces"),
    _fk("invited_user_id", "users"),
    _fk("invited_by_id", "users", nullable=True, ondelete="SET NULL"),
    sa.Column("role", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
  )
  op.create_index("ix_workspace_invitations_workspace_id", "workspace_invitations", ["workspace_id"], unique=False)
  op.create_index("ix_workspace_invitations_invited_user_id", "workspace_invitations", ["invited_user_id"], unique=False)
  op.create_index(
    "ux_workspace_invitation_pending",
    "workspace_invitations",
    ["workspace_id", "invited_user_id"],
    unique=True,
    postgresql_where=sa.text("status = 'PENDING'"),
    sqlite_where=sa.text("status = 'PENDING'"),
  )

  op.create_table(
    "boards",
    _id(),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    _fk("workspace_id", "workspaces"),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_boards_workspace_id", "boards", ["workspace_id"], unique=False)

  op.create_table(
    "board_columns",
    _id(),
    _fk("board_id", "boards"),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("sort_order", sa.Integer(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_board_columns_board_id", "board_columns", ["board_id"], unique=False)

  op.create_table(
    "cards",
    _id(),
    _fk("column_id", "board_columns"),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("sort_order", sa.Integer(), nullable=False),
    _fk("assignee_id", "users", nullable=True, ondelete="SET NULL"),
    _fk("creator_id", "users"),
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("labels", json_type, nullable=False),
    sa.Column("is_completed", sa.Boolean(), nullable=False),
    sa.Column("is_archived", sa.Boolean(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_cards_column_id", "cards", ["column_id"], unique=False)
  op.create_index("ix_cards_assignee_id", "cards", ["assignee_id"], unique=False)

  op.create_table(
    "checklist_items",
    _id(),
    _fk("card_id", "cards"),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("is_completed", sa.Boolean(), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_checklist_items_card_id", "checklist_items", ["card_id"], unique=False)

  op.create_table(
    "comments",
    _id(),
    _fk("card_id", "cards"),
    _fk("author_id", "users"),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("mentions", json_type, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_comments_card_id", "comments", ["card_id"], unique=False)

  op.create_table(
    "attachments",
    _id(),
    _fk("card_id", "cards"),
    _fk("uploaded_by_id", "users"),
    sa.Column("filename", sa.String(), nullable=False),
    sa.Column("stored_name", sa.String(), nullable=False),
    sa.Column("mime_type", sa.String(), nullable=False),
    sa.Column("size", sa.Integer(), nullable=False),
    sa.Column("url", sa.String(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_attachments_card_id", "attachments", ["card_id"], unique=False)

  op.create_table(
    "labels",
    _id(),
    _fk("board_id", "boards"),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("color", sa.String(7), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_labels_board_id", "labels", ["board_id"], unique=False)

  op.create_table(
    "card_labels",
    _id(),
    _fk("card_id", "cards"),
    _fk("label_id", "labels"),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("card_id", "label_id", name="ux_card_label_card_label"),
  )
  op.create_index("ix_card_labels_card_id", "card_labels", ["card_id"], unique=False)
  op.create_index("ix_card_labels_label_id", "card_labels", ["label_id"], unique=False)

  op.create_table(
    "activity_logs",
    _id(),
    _fk("card_id", "cards"),
    _fk("user_id", "users"),
    sa.Column("action_type", sa.String(), nullable=False),
    sa.Column("details", json_type, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_activity_logs_card_id", "activity_logs", ["card_id"], unique=False)

  op.create_table(
    "notifications",
    _id(),
    _fk("user_id", "users"),
    sa.Column("type", sa.String(), nullable=False),
    sa.Column("message", sa.Text(), nullable=False),
    _fk("card_id", "cards", nullable=True),
    _fk("workspace_invitation_id", "workspace_invitations", nullable=True),
    sa.Column("read", sa.Boolean(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)


def downgrade() -> None:
  op.drop_table("notifications")
  op.drop_table("activity_logs")
  op.drop_table("card_labels")
  op.drop_table("labels")
  op.drop_table("attachments")
  op.drop_table("comments")
  op.drop_table("checklist_items")
  op.drop_table("cards")
  op.drop_table("board_columns")
  op.drop_table("boards")
  op.drop_table("workspace_invitations")
  op.drop_table("workspace_members")
  op.drop_table("workspaces")
  op.drop_table("sessions")
  op.drop_table("users")
