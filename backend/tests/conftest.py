import heapq
import os
import sys
import pytest

# Ensure the backend root (containing the `memory_match` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from memory_match import create_app, db, socketio
from memory_match.services.game.errors import InsufficientAssets
from memory_match.services.game.scheduler import EpochScheduler
from memory_match.services.game.scoring import ScoreStore
from memory_match.services.game.session import Presenter, SessionController


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    PAIR_CHOICES = (1, 2, 8)
    DEFAULT_PAIRS = 8
    MATCH_DELAY_MS = 10
    MISMATCH_DELAY_MS = 30
    TIMER_TICK_MS = 20
    ASSET_ATTEMPT_MULTIPLIER = 3
    ASSET_FETCH_BUDGET_SEC = 0
    HIGHSCORE_KEY = 'memory_highscore_pokemon'
    LAST_USER_KEY = 'memory_last_user'


class ManualScheduler(EpochScheduler):
    """Scheduler on a virtual millisecond clock, advanced by the test."""

    def __init__(self):
        super().__init__()
        self.now = 0
        self._queue = []
        self._seq = 0

    def clock(self):
        return self.now

    def _start(self, call):
        self._seq += 1
        heapq.heappush(self._queue, (self.now + call.delay_ms, self._seq, call))

    def advance(self, ms):
        target = self.now + ms
        while self._queue and self._queue[0][0] <= target:
            due, _, call = heapq.heappop(self._queue)
            self.now = due
            if self._fire(call):
                self._seq += 1
                heapq.heappush(self._queue, (due + call.interval_ms, self._seq, call))
        self.now = target


class FakeImageSource:
    def __init__(self, fail=False):
        self.fail = fail
        self.requests = []
        self.before_return = None

    def fetch_unique_assets(self, n):
        self.requests.append(n)
        if self.before_return:
            self.before_return()
        if self.fail:
            raise InsufficientAssets(requested=n, obtained=0, attempts=n * 12)
        return [f"https://img.example/{i}.png" for i in range(n)]


class RecordingPresenter(Presenter):
    def __init__(self):
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)

    def named(self, name):
        return [c[1:] for c in self.calls if c[0] == name]

    def show_loading(self):
        self._record('loading')

    def show_load_error(self, message):
        self._record('load_error', message)

    def render_deck(self, session):
        self._record('deck', session)

    def update_card(self, card_id, state):
        self._record('card', card_id, state)

    def update_timer(self, text):
        self._record('timer', text)

    def render_best(self, record):
        self._record('best', record)

    def notify(self, title, body, kind):
        self._record('notify', title, body, kind)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import memory_match.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def file_app(tmp_path):
    """App on a file-backed SQLite database, for tests that share it across threads."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'scores.db'}"

    application = create_app(FileConfig)
    with application.app_context():
        import memory_match.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    flask_app.extensions['image_source'] = FakeImageSource()
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def image_source():
    return FakeImageSource()


@pytest.fixture()
def presenter():
    return RecordingPresenter()


@pytest.fixture()
def score_store(flask_app):
    return ScoreStore()


@pytest.fixture()
def controller(image_source, score_store, presenter, scheduler):
    return SessionController(
        image_source,
        score_store,
        presenter,
        scheduler,
        clock=scheduler.clock,
        pair_choices=(1, 2, 4, 8),
        default_pairs=2,
    )
