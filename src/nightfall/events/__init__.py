"""Events package."""

from nightfall.events.game_events import (
    GameEvent,
    EventType,
    EventVisibility,
    DeathCause,
    public_event,
    private_event,
    role_event,
    dead_event,
)
from nightfall.events.event_visibility import (
    PlayerView,
    GameView,
    can_view,
    events_for_viewer,
    project_game,
)
from nightfall.events.event_log import GameEventLog
from nightfall.events.broadcaster import EventBroadcaster, Subscription

__all__ = [
    "GameEvent",
    "EventType",
    "EventVisibility",
    "DeathCause",
    "public_event",
    "private_event",
    "role_event",
    "dead_event",
    "PlayerView",
    "GameView",
    "can_view",
    "events_for_viewer",
    "project_game",
    "GameEventLog",
    "EventBroadcaster",
    "Subscription",
]
