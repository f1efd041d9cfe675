"""Aggregate statistics across stored games."""

from collections import defaultdict
from typing import Any, Dict, List, Optional

from timekeeper.models import Game, Turn, VPChange
from .session.clock import format_elapsed
from .session.gateway import STATUS_COMPLETED
from .session.scoring import round_half_up

FILTER_TYPES = ('game', 'location', 'player')


def _matches(summary: Dict[str, Any], filter_type: str, term: str) -> bool:
    if filter_type == 'game':
        return term in (summary['name'] or '').lower()
    if filter_type == 'location':
        return term in (summary['location'] or '').lower()
    if filter_type == 'player':
        return any(
            term in (p['name'] or '').lower() or term in (p['side'] or '').lower()
            for p in summary['players']
        )
    return True


def summarize_game(game: Game) -> Dict[str, Any]:
    players = [
        {'id': p.id, 'name': p.name, 'side': p.side, 'color': p.color, 'total_vp': p.total_vp}
        for p in game.players
    ]
    changes = defaultdict(list)
    for c in VPChange.query.filter_by(game_id=game.id).order_by(VPChange.id).all():
        changes[c.player_id].append(c.vp_amount)
    total_time = game.stats.total_elapsed_time if game.stats else 0
    winner = None
    if game.status == STATUS_COMPLETED and players:
        top = max(players, key=lambda p: p['total_vp'])
        winner = top['name']
    return {
        'id': game.id,
        'name': game.name,
        'location': game.location,
        'notes': game.notes,
        'status': game.status,
        'created_at': game.created_at.isoformat() if game.created_at else None,
        'players': players,
        'vp_history': [{'player_name': p['name'], 'vp_changes': changes.get(p['id'], [])} for p in players],
        'total_turns': Turn.query.filter_by(game_id=game.id).count(),
        'total_time': total_time,
        'total_time_display': format_elapsed(total_time),
        'winner': winner,
    }


def game_summaries(filter_type: str = 'game', term: Optional[str] = None) -> List[Dict[str, Any]]:
    """Newest-first game summaries, optionally filtered by a search term."""
    summaries = [summarize_game(g) for g in Game.query.order_by(Game.created_at.desc(), Game.id.desc()).all()]
    if not term:
        return summaries
    term = term.strip().lower()
    return [s for s in summaries if _matches(s, filter_type, term)]


def player_leaderboard() -> List[Dict[str, Any]]:
    """Per-player totals across completed games, keyed by display name."""
    rows: Dict[str, Dict[str, Any]] = {}
    for game in Game.query.filter_by(status=STATUS_COMPLETED).all():
        if not game.players:
            continue
        best = max(p.total_vp for p in game.players)
        durations = defaultdict(list)
        for t in game.turns:
            durations[t.player_id].append(t.duration)
        for p in game.players:
            row = rows.setdefault(p.name.lower(), {
                'name': p.name, 'games_played': 0, 'wins': 0, 'total_vp': 0,
                'turn_count': 0, 'total_duration': 0,
            })
            row['games_played'] += 1
            row['total_vp'] += p.total_vp
            if p.total_vp == best:
                row['wins'] += 1
            row['turn_count'] += len(durations[p.id])
            row['total_duration'] += sum(durations[p.id])

    board = []
    for row in rows.values():
        row['average_turn_duration'] = round_half_up(row['total_duration'], row['turn_count'])
        board.append(row)
    board.sort(key=lambda r: (-r['wins'], -r['total_vp'], r['name'].lower()))
    return board
