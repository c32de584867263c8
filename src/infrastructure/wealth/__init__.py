from src.infrastructure.wealth.in_memory import InMemoryWealthRepository
from src.infrastructure.wealth.postgres import PostgresWealthRepository

__all__ = ["InMemoryWealthRepository", "PostgresWealthRepository"]
