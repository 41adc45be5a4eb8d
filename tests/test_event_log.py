"""Tests for the event_log module."""

import os

from nightfall.events import (
    EventType,
    GameEventLog,
    dead_event,
    private_event,
    public_event,
)
from nightfall.models import GamePhase


GAME_ID = "game-1"


def sample_log() -> GameEventLog:
    events = [
        public_event(GAME_ID, EventType.GAME_STARTED, 1, GamePhase.NIGHT, player_count=5),
        private_event(GAME_ID, EventType.ROLE_ASSIGNED, ["user-1"], 1, GamePhase.NIGHT, role="WEREWOLF"),
        public_event(GAME_ID, EventType.PLAYER_KILLED, 1, GamePhase.NIGHT, player_id="p3", cause="NIGHT_KILL"),
        dead_event(GAME_ID, EventType.ROLE_REVEALED, 1, GamePhase.NIGHT, player_id="p3", role="SEER"),
        public_event(GAME_ID, EventType.PLAYER_ELIMINATED, 1, GamePhase.VOTING, player_id="p1", vote_count=3),
        public_event(GAME_ID, EventType.GAME_ENDED, 1, GamePhase.GAME_OVER, winning_side="VILLAGE", winners=[]),
    ]
    events = [e.model_copy(update={"sequence": n}) for n, e in enumerate(events, start=1)]
    return GameEventLog(game_id=GAME_ID, code="ABC234", events=events)


class TestGameEventLog:
    def test_public_only(self) -> None:
        public = sample_log().public_only()
        assert [e.sequence for e in public.events] == [1, 3, 5, 6]

    def test_deaths_in_order(self) -> None:
        assert sample_log().deaths() == ["p3", "p1"]

    def test_winner(self) -> None:
        assert sample_log().winner() == "VILLAGE"
        assert GameEventLog(game_id=GAME_ID, code="ABC234").winner() is None

    def test_str_lists_events(self) -> None:
        text = str(sample_log())
        assert "ABC234" in text
        assert "#6 GAME_ENDED" in text


class TestYamlExport:
    def test_hidden_events_dropped_by_default(self) -> None:
        text = sample_log().to_yaml()
        assert "ROLE_ASSIGNED" not in text
        assert "PLAYER_KILLED" in text

    def test_include_hidden(self) -> None:
        text = sample_log().to_yaml(include_hidden=True)
        assert "ROLE_ASSIGNED" in text
        assert "ROLE_REVEALED" in text

    def test_save_and_load(self, tmp_path) -> None:
        path = os.path.join(tmp_path, "game.yaml")
        log = sample_log()
        log.save_to_file(path, include_hidden=True)

        loaded = GameEventLog.load_from_file(path)

        assert loaded.code == "ABC234"
        assert len(loaded.events) == 6
        assert loaded.events[1].visible_to == ("user-1",)
        assert loaded.events[2].type == EventType.PLAYER_KILLED
        assert loaded.deaths() == log.deaths()
