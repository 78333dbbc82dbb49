from flask import Blueprint, jsonify, request, current_app
from memory_match.services.game.scoring import ScoreStore


game = Blueprint('game', __name__)


def _score_store() -> ScoreStore:
    return ScoreStore.from_config(current_app.config)


def _best_dict(record):
    return record.to_dict() if record else None


@game.route('/config', methods=['GET'])
def get_game_config():
    """Everything the start screen needs: pair choices, last player, best time."""
    store = _score_store()
    return jsonify({
        'pair_choices': list(current_app.config.get('PAIR_CHOICES', ())),
        'default_pairs': current_app.config.get('DEFAULT_PAIRS'),
        'last_user': store.load_last_user(),
        'best': _best_dict(store.load_best()),
    }), 200


@game.route('/best', methods=['GET'])
def get_best():
    return jsonify({'best': _best_dict(_score_store().load_best())}), 200


@game.route('/player', methods=['PUT'])
def set_player():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'Player name is required'}), 400
    _score_store().save_last_user(name)
    current_app.logger.info(f"[player] last user set to {name}")
    return jsonify({'last_user': name}), 200
