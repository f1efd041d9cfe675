from flask import Blueprint, jsonify, request
from timekeeper.services.statistics import FILTER_TYPES, game_summaries, player_leaderboard

statistics = Blueprint('statistics', __name__)


@statistics.route('/games', methods=['GET'])
def list_games():
    filter_type = request.args.get('filter', 'game')
    if filter_type not in FILTER_TYPES:
        return jsonify({'error': f"filter must be one of {', '.join(FILTER_TYPES)}"}), 400
    return jsonify(game_summaries(filter_type, request.args.get('q')))


@statistics.route('/players', methods=['GET'])
def list_players():
    return jsonify(player_leaderboard())
