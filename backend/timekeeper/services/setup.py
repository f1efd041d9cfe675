"""Game setup: validation, color palette and the saved-setup store."""

import json
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from timekeeper import db
from timekeeper.models import SavedSetup
from .session.errors import PersistenceError, ValidationError
from .session.gateway import GatewayResult

PLAYER_COLORS = [
    {'name': 'Red', 'value': '#FF3B30'},
    {'name': 'Blue', 'value': '#007AFF'},
    {'name': 'Green', 'value': '#34C759'},
    {'name': 'Yellow', 'value': '#FFCC00'},
    {'name': 'Purple', 'value': '#AF52DE'},
    {'name': 'Orange', 'value': '#FF9500'},
    {'name': 'Teal', 'value': '#5AC8FA'},
    {'name': 'Pink', 'value': '#FF2D55'},
    {'name': 'Lime', 'value': '#B0FD6D'},
    {'name': 'Brown', 'value': '#A2845E'},
]
_PALETTE_BY_VALUE = {c['value'].upper(): c['value'] for c in PLAYER_COLORS}
_PALETTE_BY_NAME = {c['name'].lower(): c['value'] for c in PLAYER_COLORS}


@dataclass
class PlayerSetup:
    name: str
    side: Optional[str] = None
    side_icon: Optional[str] = None
    color: Optional[str] = None
    background_url: Optional[str] = None


@dataclass
class GameSetup:
    game_name: str
    location: str
    notes: str = ''
    players: List[PlayerSetup] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def resolve_color(raw) -> Optional[str]:
    """Map a palette name or hex value to its canonical hex value."""
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    return _PALETTE_BY_VALUE.get(text.upper()) or _PALETTE_BY_NAME.get(text.lower())


def next_available_color(used) -> Optional[str]:
    """First palette color not in used, or None once the palette is exhausted."""
    used = set(used)
    for c in PLAYER_COLORS:
        if c['value'] not in used:
            return c['value']
    return None


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_setup(data, min_players: int = 1) -> GameSetup:
    """Validate a setup payload.

    Accepts camelCase keys (gameName, sideIcon) as sent by the web client as
    well as snake_case. Raises ValidationError listing every problem found.
    Players without a color get the next unused palette color.
    """
    if not isinstance(data, dict):
        raise ValidationError('Setup payload must be an object', ['payload'])

    problems = []
    game_name = _clean(data.get('game_name', data.get('gameName')))
    location = _clean(data.get('location'))
    notes = _clean(data.get('notes')) or ''
    if not game_name:
        problems.append('game_name is required')
    if not location:
        problems.append('location is required')

    raw_players = data.get('players') or []
    if not isinstance(raw_players, list):
        raw_players = []
        problems.append('players must be a list')
    if len(raw_players) < max(1, min_players):
        problems.append(f'At least {max(1, min_players)} player(s) required')

    players = []
    seen_names, seen_sides, used_colors = set(), set(), []
    for idx, raw in enumerate(raw_players):
        raw = raw if isinstance(raw, dict) else {'name': raw}
        name = _clean(raw.get('name'))
        side = _clean(raw.get('side'))
        if not name:
            problems.append(f'players[{idx}].name is required')
        elif name.lower() in seen_names:
            problems.append(f'players[{idx}].name "{name}" is already used')
        else:
            seen_names.add(name.lower())
        if side:
            if side.lower() in seen_sides:
                problems.append(f'players[{idx}].side "{side}" is already chosen')
            seen_sides.add(side.lower())

        color = None
        raw_color = _clean(raw.get('color'))
        if raw_color:
            color = resolve_color(raw_color)
            if color is None:
                problems.append(f'players[{idx}].color "{raw_color}" is not in the palette')
            elif color in used_colors:
                problems.append(f'players[{idx}].color "{raw_color}" is already used')
            else:
                used_colors.append(color)

        players.append(PlayerSetup(
            name=name or '',
            side=side,
            side_icon=_clean(raw.get('side_icon', raw.get('sideIcon'))),
            color=color,
            background_url=_clean(raw.get('background_url', raw.get('backgroundUrl'))),
        ))

    if problems:
        raise ValidationError('Please fill in all required fields', problems)

    for p in players:
        if p.color is None:
            p.color = next_available_color(used_colors)
            if p.color is not None:
                used_colors.append(p.color)

    return GameSetup(game_name=game_name, location=location, notes=notes, players=players)


class SetupStore:
    """Key-value load/save of raw setup payloads."""

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        row = SavedSetup.query.filter_by(key=key).first()
        return row.data if row else None

    def save(self, key: str, payload: Dict[str, Any]) -> GatewayResult:
        try:
            row = SavedSetup.query.filter_by(key=key).first()
            if row is None:
                row = SavedSetup(key=key, payload=json.dumps(payload))
            else:
                row.payload = json.dumps(payload)
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            return GatewayResult.failure(PersistenceError(str(exc)))
        return GatewayResult.success(row.to_dict())
