"""Chronological event log export for post-game review."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
import yaml

from nightfall.events.game_events import GameEvent, EventType, EventVisibility


class GameEventLog(BaseModel):
    """Events of one game in append order."""

    game_id: str
    code: str
    exported_at: datetime = Field(default_factory=datetime.now)
    events: list[GameEvent] = Field(default_factory=list)

    def __str__(self) -> str:
        lines = [f"Game {self.code} ({len(self.events)} events)"]
        for event in self.events:
            lines.append(f"  #{event.sequence} {event}")
        return "\n".join(lines)

    def public_only(self) -> "GameEventLog":
        return GameEventLog(
            game_id=self.game_id,
            code=self.code,
            exported_at=self.exported_at,
            events=[e for e in self.events if e.visibility == EventVisibility.PUBLIC],
        )

    def deaths(self) -> list[str]:
        """Player ids in the order they died."""
        deaths: list[str] = []
        for event in self.events:
            if event.type in (EventType.PLAYER_KILLED, EventType.PLAYER_ELIMINATED):
                deaths.append(event.data["player_id"])
        return deaths

    def winner(self) -> Optional[str]:
        for event in reversed(self.events):
            if event.type == EventType.GAME_ENDED:
                return event.data.get("winning_side")
        return None

    def to_yaml(self, include_hidden: bool = False) -> str:
        """Serialize to YAML; hidden events are dropped unless asked for."""
        log = self if include_hidden else self.public_only()
        data = log.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def save_to_file(self, filepath: str, include_hidden: bool = False) -> None:
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.to_yaml(include_hidden=include_hidden))

    @classmethod
    def load_from_file(cls, filepath: str) -> "GameEventLog":
        with open(filepath, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data)
