# ParkEase/database_creator.py
import logging

import click
from sqlalchemy import inspect, text

from models.models import db

logger = logging.getLogger(__name__)

# Columns added after the first release: (table, column, DDL type)
ADDITIVE_COLUMNS = (
    ('parkings', 'city', 'VARCHAR(255)'),
    ('parkings', 'cancel_time_limit', 'INTEGER'),
)


# ---------------- Database Migration Function ----------------
def migrate_database():
    """Adds columns missing from databases created by older versions. Returns the columns added."""
    inspector = inspect(db.engine)
    tables = set(inspector.get_table_names())

    pending = []
    for table, column, ddl_type in ADDITIVE_COLUMNS:
        if table not in tables:
            continue
        if column not in {col['name'] for col in inspector.get_columns(table)}:
            pending.append((table, column, ddl_type))

    if not pending:
        logger.info("No migrations needed - database is up to date")
        return []

    with db.engine.begin() as conn:
        for table, column, ddl_type in pending:
            logger.info("Adding missing %s.%s column", table, column)
            conn.execute(text(f'ALTER TABLE {table} ADD COLUMN {column} {ddl_type}'))

    applied = [f'{table}.{column}' for table, column, _ in pending]
    logger.info("Database migrations completed: %s", ', '.join(applied))
    return applied


# ---------------- Create DB ----------------
def setup_database():
    """Complete database setup: tables first, then additive migrations."""
    logger.info("Starting database setup...")
    db.create_all()
    applied = migrate_database()
    logger.info("Database setup completed")
    return applied


def init_database_commands(app):
    """Registers ``flask init-db`` with the Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create tables and apply pending column migrations."""
        applied = setup_database()
        click.echo(f"Database ready ({len(applied)} migration(s) applied).")
