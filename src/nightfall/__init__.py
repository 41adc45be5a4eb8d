"""nightfall - lobby and game-phase engine for a werewolf party game."""

__version__ = "0.1.0"
