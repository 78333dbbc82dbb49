import logging
import random
import time
from typing import Callable, Optional, Sequence

from .deck import build_deck
from .engine import (
    MATCH_DELAY_MS,
    MISMATCH_DELAY_MS,
    CardState,
    GameSession,
    MatchEngine,
)
from .errors import AssetAcquisitionError, ValidationError
from .scheduler import EpochScheduler
from .scoring import ScoreRecord, ScoreStore
from .timer import TICK_MS, GameTimer, format_time

logger = logging.getLogger(__name__)

DEFAULT_PAIR_CHOICES = (4, 6, 8, 10, 12)
DEFAULT_PAIRS = 8

NOTIFY_SUCCESS = 'success'
NOTIFY_INFO = 'info'
NOTIFY_WARNING = 'warning'


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class Presenter:
    """Rendering side of a game. The base class renders nothing."""

    def show_loading(self) -> None:
        pass

    def show_load_error(self, message: str) -> None:
        pass

    def render_deck(self, session: GameSession) -> None:
        pass

    def update_card(self, card_id: str, state: CardState) -> None:
        pass

    def update_timer(self, text: str) -> None:
        pass

    def render_best(self, record: Optional[ScoreRecord]) -> None:
        pass

    def notify(self, title: str, body: str, kind: str) -> None:
        pass


class SessionController:
    """Owns one player's game: setup, input routing, teardown and scoring.

    A controller holds at most one GameSession. Starting or abandoning a game
    moves the scheduler to a new epoch, so settle and tick callbacks that
    belong to the previous session are dropped.
    """

    def __init__(
        self,
        image_source,
        score_store: ScoreStore,
        presenter: Presenter,
        scheduler: EpochScheduler,
        clock: Callable[[], int] = monotonic_ms,
        pair_choices: Sequence[int] = DEFAULT_PAIR_CHOICES,
        default_pairs: int = DEFAULT_PAIRS,
        match_delay_ms: int = MATCH_DELAY_MS,
        mismatch_delay_ms: int = MISMATCH_DELAY_MS,
        tick_ms: int = TICK_MS,
        rng: Optional[random.Random] = None,
    ):
        if default_pairs not in pair_choices:
            raise ValueError(f"default pair count {default_pairs} is not one of {tuple(pair_choices)}")
        if mismatch_delay_ms <= match_delay_ms:
            raise ValueError('mismatch delay must be longer than match delay')
        self.image_source = image_source
        self.score_store = score_store
        self.presenter = presenter
        self.scheduler = scheduler
        self.clock = clock
        self.pair_choices = tuple(pair_choices)
        self.default_pairs = default_pairs
        self.match_delay_ms = match_delay_ms
        self.mismatch_delay_ms = mismatch_delay_ms
        self.tick_ms = tick_ms
        self.rng = rng
        self.username = ''
        self.status = 'idle'  # idle, loading, load_error, ready, finished
        self.session: Optional[GameSession] = None
        self.engine: Optional[MatchEngine] = None
        self.timer: Optional[GameTimer] = None
        self.last_result: Optional[dict] = None

    @classmethod
    def from_config(cls, config, image_source, score_store, presenter, scheduler, **kwargs):
        return cls(
            image_source,
            score_store,
            presenter,
            scheduler,
            pair_choices=config.get('PAIR_CHOICES', DEFAULT_PAIR_CHOICES),
            default_pairs=int(config.get('DEFAULT_PAIRS', DEFAULT_PAIRS)),
            match_delay_ms=int(config.get('MATCH_DELAY_MS', MATCH_DELAY_MS)),
            mismatch_delay_ms=int(config.get('MISMATCH_DELAY_MS', MISMATCH_DELAY_MS)),
            tick_ms=int(config.get('TIMER_TICK_MS', TICK_MS)),
            **kwargs,
        )

    def resolve_pair_count(self, value=None) -> int:
        if value is None or value == '':
            return self.default_pairs
        if isinstance(value, str) and value.strip().isdecimal():
            pairs = int(value)
        elif isinstance(value, int) and not isinstance(value, bool):
            pairs = value
        else:
            raise ValidationError(f"pair count must be a whole number, got {value!r}", title='Invalid pair count')
        if pairs not in self.pair_choices:
            raise ValidationError(
                f"pair count must be one of {', '.join(str(p) for p in self.pair_choices)}",
                title='Invalid pair count',
            )
        return pairs

    def start_game(self, username: str, pair_count=None) -> Optional[GameSession]:
        """Start a fresh game. Returns None when the deck could not be loaded.

        Raises ValidationError for a blank name or unsupported pair count;
        nothing about the current game is touched in that case.
        """
        name = (username or '').strip()
        if not name:
            raise ValidationError('Please enter your name to start', title='Name required')
        pairs = self.resolve_pair_count(pair_count)

        with self.scheduler.lock:
            epoch = self._reset()
            self.username = name
            self.status = 'loading'
            self.score_store.save_last_user(name)
            self.presenter.show_loading()
            self.presenter.update_timer(format_time(0))
            logger.info(f"[session-start] epoch={epoch} user={name} pairs={pairs}")

        # Fetching may block on the network; input and callbacks stay serviceable
        try:
            assets = self.image_source.fetch_unique_assets(pairs)
        except AssetAcquisitionError as exc:
            with self.scheduler.lock:
                if self.scheduler.epoch != epoch:
                    return None
                logger.error(f"[session-load-error] epoch={epoch}: {exc}")
                self.status = 'load_error'
                self.presenter.show_load_error('Could not load images')
            return None
        except Exception:
            with self.scheduler.lock:
                if self.scheduler.epoch != epoch:
                    return None
                logger.exception(f"[session-load-error] epoch={epoch}: unexpected image source failure")
                self.status = 'load_error'
                self.presenter.show_load_error('Could not load images')
            return None

        with self.scheduler.lock:
            if self.scheduler.epoch != epoch:
                logger.info(f"[session-stale] epoch={epoch} current={self.scheduler.epoch}")
                return None
            session = GameSession(pair_count=pairs, deck=build_deck(assets, self.rng), epoch=epoch)
            engine = MatchEngine(
                session,
                self.scheduler,
                self.clock,
                match_delay_ms=self.match_delay_ms,
                mismatch_delay_ms=self.mismatch_delay_ms,
            )
            timer = GameTimer(self.scheduler, self.clock, on_tick=self._on_tick, tick_ms=self.tick_ms)
            engine.subscribe(timer.handle_engine_event)
            engine.subscribe(self._on_engine_event)
            self.session, self.engine, self.timer = session, engine, timer
            self.status = 'ready'
            self.presenter.render_deck(session)
            return session

    def card_activated(self, card_id: str) -> bool:
        with self.scheduler.lock:
            if self.engine is None:
                return False
            return self.engine.card_activated(card_id)

    def abandon(self) -> None:
        with self.scheduler.lock:
            self._reset()
            self.status = 'idle'

    def _reset(self) -> int:
        if self.timer is not None:
            self.timer.reset()
        epoch = self.scheduler.next_epoch()
        self.session = None
        self.engine = None
        self.timer = None
        self.last_result = None
        return epoch

    def _on_tick(self, elapsed_ms: int) -> None:
        self.presenter.update_timer(format_time(elapsed_ms))

    def _on_engine_event(self, event: str, payload: dict) -> None:
        if event == 'card_state':
            self.presenter.update_card(payload['card_id'], payload['state'])
        elif event == 'completed':
            self._finish(payload['elapsed_ms'])

    def _finish(self, elapsed_ms: int) -> None:
        pairs = self.session.pair_count
        is_record = self.score_store.record_if_best(self.username, elapsed_ms, pairs)
        self.status = 'finished'
        self.last_result = {
            'username': self.username,
            'time_ms': elapsed_ms,
            'time': format_time(elapsed_ms),
            'pairs': pairs,
            'is_record': is_record,
        }
        self.presenter.render_best(self.score_store.load_best())
        title = 'New record' if is_record else 'Game finished'
        body = f"{self.username}, your time was {format_time(elapsed_ms)}"
        self.presenter.notify(title, body, NOTIFY_SUCCESS if is_record else NOTIFY_INFO)
