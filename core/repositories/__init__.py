"""StudioRepository implementations."""

from core.repositories.memory_repository import MemoryStudioRepository
from core.repositories.postgres_repository import PostgresStudioRepository
