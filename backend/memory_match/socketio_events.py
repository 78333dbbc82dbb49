from flask import current_app, request
from flask_socketio import emit
from memory_match import socketio
from memory_match.services.game.errors import ValidationError
from memory_match.services.game.scheduler import SocketIOScheduler
from memory_match.services.game.scoring import ScoreStore
from memory_match.services.game.session import NOTIFY_WARNING, Presenter, SessionController
from typing import Dict


class SocketIOPresenter(Presenter):
    """Pushes render commands to a single connected client."""

    def __init__(self, sid: str, namespace: str):
        self.sid = sid
        self.namespace = namespace

    def _send(self, event, payload):
        # socketio.emit works from background tasks as well as handlers
        socketio.emit(event, payload, to=self.sid, namespace=self.namespace)

    def show_loading(self):
        self._send('loading', {})

    def show_load_error(self, message):
        self._send('load_error', {'message': message})

    def render_deck(self, session):
        self._send('deck', session.to_dict())

    def update_card(self, card_id, state):
        self._send('card_state', {'card_id': card_id, 'state': state.value})

    def update_timer(self, text):
        self._send('timer', {'text': text})

    def render_best(self, record):
        self._send('best', _best_payload(record))

    def notify(self, title, body, kind):
        self._send('notification', {'title': title, 'body': body, 'kind': kind})


def _best_payload(record):
    return {'best': record.to_dict() if record else None}


_sid_to_controller: Dict[str, SessionController] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _controller_for_request() -> SessionController:
    sid = _get_sid()
    controller = _sid_to_controller.get(sid)
    if controller is None:
        app = current_app._get_current_object()
        controller = SessionController.from_config(
            app.config,
            app.extensions['image_source'],
            ScoreStore.from_config(app.config),
            SocketIOPresenter(sid, request.namespace),
            SocketIOScheduler(app, socketio),
        )
        _sid_to_controller[sid] = controller
    return controller


def handle_connect():
    store = ScoreStore.from_config(current_app.config)
    emit('connected', {
        'pair_choices': list(current_app.config.get('PAIR_CHOICES', ())),
        'default_pairs': current_app.config.get('DEFAULT_PAIRS'),
        'last_user': store.load_last_user(),
        **_best_payload(store.load_best()),
    })


def handle_disconnect(*args):
    controller = _sid_to_controller.pop(_get_sid(), None)
    if controller:
        controller.abandon()


def handle_start_game(data):
    data = data or {}
    controller = _controller_for_request()
    try:
        controller.start_game(data.get('username'), data.get('pairs'))
    except ValidationError as exc:
        emit('notification', {'title': exc.title, 'body': str(exc), 'kind': NOTIFY_WARNING})


def handle_card_activated(data):
    card_id = (data or {}).get('card_id')
    if not card_id:
        emit('error', {'message': 'card_id is required'})
        return
    controller = _sid_to_controller.get(_get_sid())
    if controller:
        controller.card_activated(str(card_id))


def handle_abandon_game(data=None):
    controller = _sid_to_controller.get(_get_sid())
    if controller:
        controller.abandon()
    emit('abandoned', {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('start_game', handle_start_game, namespace=namespace)
        socketio.on_event('card_activated', handle_card_activated, namespace=namespace)
        socketio.on_event('abandon_game', handle_abandon_game, namespace=namespace)
