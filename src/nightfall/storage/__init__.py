"""Storage package."""

from nightfall.storage.repository import GameRepository, InMemoryGameRepository, UnitOfWork

__all__ = [
    "GameRepository",
    "InMemoryGameRepository",
    "UnitOfWork",
]
