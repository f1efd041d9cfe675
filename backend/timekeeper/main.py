from flask import Blueprint, request, jsonify
from timekeeper.services.setup import PLAYER_COLORS, SetupStore

main = Blueprint('main', __name__)
setup_store = SetupStore()


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the turn timer server!'})


@main.route('/palette')
def palette():
    return jsonify(PLAYER_COLORS)


@main.route('/setup/<string:key>', methods=['GET'])
def load_setup(key):
    payload = setup_store.load(key)
    if payload is None:
        return jsonify({'error': 'No saved setup'}), 404
    return jsonify(payload)


@main.route('/setup/<string:key>', methods=['PUT'])
def save_setup(key):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Setup payload must be a JSON object'}), 400
    result = setup_store.save(key, data)
    if not result:
        return jsonify({'error': str(result.error), 'retryable': True}), 503
    return jsonify(result.value)
