"""Users and tasks tables.

Revision ID: 001
Revises:
Create Date: 2026-10-16
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Users: pending_tasks holds task ids; no foreign key, the reconciler owns it
    op.execute("""
        CREATE TABLE users (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT UNIQUE NOT NULL,
            pending_tasks TEXT[] NOT NULL DEFAULT '{}',
            date_created TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    op.execute("""
        CREATE INDEX idx_users_name ON users(name);
    """)

    op.execute("""
        CREATE INDEX idx_users_pending_tasks ON users USING GIN (pending_tasks);
    """)

    # Tasks: assigned_user '' means unassigned
    op.execute("""
        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            deadline TIMESTAMPTZ NOT NULL,
            completed BOOLEAN NOT NULL DEFAULT false,
            assigned_user TEXT NOT NULL DEFAULT '',
            assigned_user_name TEXT NOT NULL DEFAULT 'unassigned',
            date_created TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    op.execute("""
        CREATE INDEX idx_tasks_assigned_user ON tasks(assigned_user);
    """)


def downgrade():
    op.execute("DROP TABLE IF EXISTS tasks;")
    op.execute("DROP TABLE IF EXISTS users;")
