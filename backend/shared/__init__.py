"""Database, models, and repositories shared by the chatwatch services."""
