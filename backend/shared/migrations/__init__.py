"""Schema migrations for the PostgreSQL storage backend."""
