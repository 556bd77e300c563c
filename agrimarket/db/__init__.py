"""Database engine, schema creation and seeding."""
