import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from .deck import Card
from .scheduler import EpochScheduler

logger = logging.getLogger(__name__)

MATCH_DELAY_MS = 300
# Longer than the match delay so the player can memorize positions
MISMATCH_DELAY_MS = 900

Listener = Callable[[str, dict], None]


class CardState(str, Enum):
    FACE_DOWN = 'face_down'
    FACE_UP = 'face_up'
    MATCHED = 'matched'


class EnginePhase(str, Enum):
    IDLE = 'idle'
    PLAYING = 'playing'
    COMPLETE = 'complete'


@dataclass
class GameSession:
    pair_count: int
    deck: List[Card]
    epoch: int = 0
    matched_pairs: int = 0
    started_at: Optional[int] = None
    input_enabled: bool = True
    phase: EnginePhase = EnginePhase.IDLE
    states: Dict[str, CardState] = field(default_factory=dict)
    flipped: List[Card] = field(default_factory=list)

    def __post_init__(self):
        if len(self.deck) != 2 * self.pair_count:
            raise ValueError(f"deck has {len(self.deck)} cards, expected {2 * self.pair_count}")
        self._by_id = {card.card_id: card for card in self.deck}
        for card in self.deck:
            self.states.setdefault(card.card_id, CardState.FACE_DOWN)

    def card(self, card_id: str) -> Optional[Card]:
        return self._by_id.get(card_id)

    def state_of(self, card_id: str) -> Optional[CardState]:
        return self.states.get(card_id)

    @property
    def is_complete(self) -> bool:
        return self.phase == EnginePhase.COMPLETE

    def to_dict(self):
        return {
            'epoch': self.epoch,
            'pair_count': self.pair_count,
            'matched_pairs': self.matched_pairs,
            'phase': self.phase.value,
            'input_enabled': self.input_enabled,
            'cards': [
                {**card.to_dict(), 'state': self.states[card.card_id].value}
                for card in self.deck
            ],
        }


class MatchEngine:
    """Flip/match/mismatch state machine for one GameSession.

    Emits ``(event, payload)`` to subscribers:
      - ``started``     first accepted flip; payload ``started_at``
      - ``card_state``  a card changed state; ``card_id``, ``state``
      - ``matched``     a pair settled as matched
      - ``mismatched``  a pair settled back face down
      - ``completed``   all pairs matched; ``elapsed_ms``, ``pair_count``
    """

    def __init__(
        self,
        session: GameSession,
        scheduler: EpochScheduler,
        clock: Callable[[], int],
        match_delay_ms: int = MATCH_DELAY_MS,
        mismatch_delay_ms: int = MISMATCH_DELAY_MS,
    ):
        if mismatch_delay_ms <= match_delay_ms:
            raise ValueError('mismatch delay must be longer than match delay')
        self.session = session
        self.scheduler = scheduler
        self.clock = clock
        self.match_delay_ms = match_delay_ms
        self.mismatch_delay_ms = mismatch_delay_ms
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: str, **payload) -> None:
        for listener in list(self._listeners):
            listener(event, payload)

    def card_activated(self, card_id: str) -> bool:
        """Flip a card face up. Returns False when the activation is ignored."""
        s = self.session
        if not s.input_enabled or s.is_complete:
            return False
        card = s.card(card_id)
        if card is None or s.states[card_id] != CardState.FACE_DOWN:
            return False

        if s.started_at is None:
            s.started_at = self.clock()
            s.phase = EnginePhase.PLAYING
            logger.info(f"[session-started] epoch={s.epoch} pairs={s.pair_count}")
            self._emit('started', started_at=s.started_at)

        s.states[card_id] = CardState.FACE_UP
        s.flipped.append(card)
        self._emit('card_state', card_id=card_id, state=CardState.FACE_UP)

        if len(s.flipped) == 2:
            self._resolve()
        return True

    def _resolve(self) -> None:
        s = self.session
        s.input_enabled = False
        a, b = s.flipped
        if a.pair_id == b.pair_id:
            self.scheduler.call_later(
                self.match_delay_ms, lambda: self._settle_match(a, b), name='settle-match'
            )
        else:
            self.scheduler.call_later(
                self.mismatch_delay_ms, lambda: self._settle_mismatch(a, b), name='settle-mismatch'
            )

    def _settle_match(self, a: Card, b: Card) -> None:
        s = self.session
        for card in (a, b):
            s.states[card.card_id] = CardState.MATCHED
            self._emit('card_state', card_id=card.card_id, state=CardState.MATCHED)
        s.matched_pairs += 1
        s.flipped = []
        s.input_enabled = True
        self._emit('matched', pair_id=a.pair_id, card_ids=[a.card_id, b.card_id],
                   matched_pairs=s.matched_pairs)
        if s.matched_pairs == s.pair_count and not s.is_complete:
            s.phase = EnginePhase.COMPLETE
            elapsed_ms = self.clock() - s.started_at
            logger.info(f"[session-complete] epoch={s.epoch} elapsed_ms={elapsed_ms}")
            self._emit('completed', elapsed_ms=elapsed_ms, pair_count=s.pair_count)

    def _settle_mismatch(self, a: Card, b: Card) -> None:
        s = self.session
        for card in (a, b):
            s.states[card.card_id] = CardState.FACE_DOWN
            self._emit('card_state', card_id=card.card_id, state=CardState.FACE_DOWN)
        s.flipped = []
        s.input_enabled = True
        self._emit('mismatched', card_ids=[a.card_id, b.card_id])
