"""Entries table and change-notification trigger.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute("""
        CREATE TABLE entries (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            title TEXT NOT NULL CHECK (length(btrim(title)) > 0),
            description TEXT NOT NULL DEFAULT '',
            code TEXT NOT NULL DEFAULT '',
            accent_color TEXT NOT NULL DEFAULT 'indigo',
            order_index INTEGER,
            author_ref TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    # Not UNIQUE: historical writes may have left duplicates; the app tolerates them.
    op.execute("""
        CREATE INDEX idx_entries_order_index ON entries(order_index);
    """)

    # One notification per statement. Postgres folds identical notifications
    # raised inside one transaction, so a bulk reorder notifies once on commit.
    op.execute("""
        CREATE FUNCTION notify_entries_changed() RETURNS trigger AS $$
        BEGIN
            PERFORM pg_notify('entries_changed', '');
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.execute("""
        CREATE TRIGGER entries_changed
        AFTER INSERT OR UPDATE OR DELETE ON entries
        FOR EACH STATEMENT EXECUTE FUNCTION notify_entries_changed();
    """)


def downgrade():
    op.execute("DROP TRIGGER IF EXISTS entries_changed ON entries;")
    op.execute("DROP FUNCTION IF EXISTS notify_entries_changed();")
    op.execute("DROP TABLE IF EXISTS entries;")
