"""Database engine, models and the SQL profile store."""
