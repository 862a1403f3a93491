"""SeaBot persistence layer (PostgreSQL via asyncpg)."""
