"""Reshape a game data envelope into spreadsheet-friendly views.

Every function here is pure and tolerant of missing data: an envelope from a
page that failed to render fully still produces the same keys, filled with
``None`` or empty collections.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from lichess_fetcher.services.probes import try_parse_json

EXTENSION_GLOBAL_MARKERS = ("lichesstools", "lichess-tools")
EXTENSION_STORAGE_MARKERS = ("LichessTools", "lichess-tools")
ENHANCEMENT_MARKERS = ("tool", "extension", "enhanced")
ANALYSIS_STORAGE_MARKERS = ("accuracy", "analysis")


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _game(envelope: Mapping[str, Any]) -> Mapping[str, Any]:
    return _mapping(_mapping(envelope.get("pageInitData")).get("game"))


def _decode(value: Any) -> Any:
    return try_parse_json(value, default=value) if isinstance(value, str) else value


def _finite(value: Any) -> bool:
    """Whether ``value`` is a real number a float can hold."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def format_clock(seconds: Any) -> Optional[str]:
    """Format a clock reading as ``M:SS`` (``75`` -> ``"1:15"``)."""
    if not _finite(seconds):
        return None
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def extract_basic_info(envelope: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    game = _game(envelope)
    if not game:
        return None
    return {
        "id": game.get("id"),
        "variant": _mapping(game.get("variant")).get("key") or "standard",
        "speed": game.get("speed"),
        "rated": game.get("rated"),
        "initialFen": game.get("initialFen"),
        "status": _mapping(game.get("status")).get("name"),
        "winner": game.get("winner"),
        "startedAt": game.get("createdAt"),
        "lastMoveAt": game.get("lastMoveAt"),
    }


def extract_moves(envelope: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Split the SAN move string and attach clocks and DOM evaluations by ply index."""
    moves: List[Dict[str, Any]] = []
    game = _game(envelope)
    move_text = game.get("moves")
    if isinstance(move_text, str) and move_text.strip():
        for index, san in enumerate(move_text.split()):
            moves.append(
                {
                    "number": index // 2 + 1,
                    "color": "white" if index % 2 == 0 else "black",
                    "move": san,
                    "san": san,
                }
            )

    clocks = game.get("clocks")
    if isinstance(clocks, list):
        for move, clock in zip(moves, clocks):
            move["clockSeconds"] = clock
            move["clockTime"] = format_clock(clock)

    evaluations = _mapping(envelope.get("dom")).get("evaluations")
    if isinstance(evaluations, list):
        for move, evaluation in zip(moves, evaluations):
            move["evaluation"] = _mapping(evaluation).get("eval")

    return moves


def extract_analysis(envelope: Mapping[str, Any]) -> Dict[str, Any]:
    analysis: Dict[str, Any] = {"available": False, "computerAnalysis": None, "accuracy": {}}
    computer = _mapping(envelope.get("pageInitData")).get("analysis")
    if computer:
        analysis["available"] = True
        analysis["computerAnalysis"] = computer

    for key, value in _mapping(envelope.get("localStorage")).items():
        if any(marker in key for marker in ANALYSIS_STORAGE_MARKERS):
            analysis["accuracy"][key] = _decode(value)
    return analysis


def _player(entry: Any) -> Optional[Dict[str, Any]]:
    player = _mapping(entry)
    if not player:
        return None
    user = _mapping(player.get("user"))
    return {
        "name": player.get("name") or user.get("name"),
        "rating": player.get("rating"),
        "ratingDiff": player.get("ratingDiff"),
        "userId": user.get("id"),
        "title": user.get("title"),
    }


def extract_player_info(envelope: Mapping[str, Any]) -> Dict[str, Any]:
    game_players = _mapping(_game(envelope).get("players"))
    return {"white": _player(game_players.get("white")), "black": _player(game_players.get("black"))}


def extract_extension_data(envelope: Mapping[str, Any]) -> Dict[str, Any]:
    """Gather traces left behind by the Lichess Tools extension."""
    found: Dict[str, Any] = {"found": False, "tools": {}, "settings": {}, "enhancements": []}

    for key, value in _mapping(envelope.get("extensionData")).items():
        if any(marker in key.lower() for marker in EXTENSION_GLOBAL_MARKERS):
            found["found"] = True
            found["tools"][key] = value

    for key, value in _mapping(envelope.get("localStorage")).items():
        if any(marker in key for marker in EXTENSION_STORAGE_MARKERS):
            found["found"] = True
            found["settings"][key] = _decode(value)

    for key, value in _mapping(envelope.get("dom")).items():
        if any(marker in key for marker in ENHANCEMENT_MARKERS):
            found["enhancements"].append({"type": key, "data": value})

    return found


def extract_timing(envelope: Mapping[str, Any]) -> Dict[str, Any]:
    timing: Dict[str, Any] = {
        "timeControl": None,
        "clockInitial": None,
        "clockIncrement": None,
        "totalGameTime": None,
    }
    game = _game(envelope)
    clock = _mapping(game.get("clock"))
    initial = clock.get("initial")
    increment = clock.get("increment")
    if clock:
        timing["clockInitial"] = initial
        timing["clockIncrement"] = increment
    if _finite(initial) and _finite(increment):
        minutes = initial / 60
        minutes_text = str(int(minutes)) if float(minutes).is_integer() else f"{minutes:g}"
        timing["timeControl"] = f"{minutes_text}+{increment}"

    started = _to_datetime(game.get("createdAt"))
    ended = _to_datetime(game.get("lastMoveAt"))
    if started is not None and ended is not None:
        timing["totalGameTime"] = int((ended - started).total_seconds())
    return timing


def extract_opening(envelope: Mapping[str, Any]) -> Dict[str, Any]:
    opening = _mapping(_game(envelope).get("opening"))
    return {"name": opening.get("name"), "eco": opening.get("eco"), "ply": opening.get("ply")}


def organize(game_id: str, envelope: Mapping[str, Any]) -> Dict[str, Any]:
    """Bundle every view for one game."""
    return {
        "gameId": game_id,
        "basicInfo": extract_basic_info(envelope),
        "moves": extract_moves(envelope),
        "analysis": extract_analysis(envelope),
        "playerInfo": extract_player_info(envelope),
        "extensionData": extract_extension_data(envelope),
        "timing": extract_timing(envelope),
        "opening": extract_opening(envelope),
    }
