"""
Initialize database tables.
Run this on first deploy instead of flask db upgrade.

Set RESET_DB=1 environment variable to drop and recreate all tables.
"""
import os

from medportal import create_app, db


def init_db():
    """Create all database tables."""
    app = create_app(os.getenv('FLASK_ENV', 'production'))

    with app.app_context():
        # create_app already honours RESET_DB; this covers partially created schemas
        app.logger.info("Creating database tables...")
        db.create_all()
        print("Database tables created successfully!")


if __name__ == '__main__':
    init_db()
