import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from memory_match.models import StoredValue
from .errors import PersistenceReadError
from .timer import format_time

logger = logging.getLogger(__name__)

HIGHSCORE_KEY = 'memory_highscore_pokemon'
LAST_USER_KEY = 'memory_last_user'

# One record is shared by every controller in the process
_record_lock = threading.Lock()


@dataclass
class ScoreRecord:
    username: str
    elapsed_ms: int
    pair_count: int
    date: str

    def to_json(self) -> str:
        return json.dumps({
            'username': self.username,
            'timeMs': self.elapsed_ms,
            'date': self.date,
            'pairs': self.pair_count,
        })

    @classmethod
    def from_json(cls, raw: str) -> 'ScoreRecord':
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise PersistenceReadError(f"best score is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceReadError('best score is not an object')
        time_ms = data.get('timeMs')
        if isinstance(time_ms, bool) or not isinstance(time_ms, (int, float)) or time_ms < 0:
            raise PersistenceReadError(f"best score has invalid timeMs: {time_ms!r}")
        pairs = data.get('pairs')
        if isinstance(pairs, bool) or not isinstance(pairs, int):
            raise PersistenceReadError(f"best score has invalid pairs: {pairs!r}")
        return cls(
            username=str(data.get('username') or ''),
            elapsed_ms=int(time_ms),
            pair_count=pairs,
            date=str(data.get('date') or ''),
        )

    def to_dict(self):
        return {
            'username': self.username,
            'time_ms': self.elapsed_ms,
            'time': format_time(self.elapsed_ms),
            'pairs': self.pair_count,
            'date': self.date,
        }


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ScoreStore:
    """Single global best-time record plus the last player name.

    Needs an application context: values live in the ``stored_value`` table.
    """

    def __init__(
        self,
        highscore_key: str = HIGHSCORE_KEY,
        last_user_key: str = LAST_USER_KEY,
        now: Callable[[], str] = _utc_iso,
    ):
        self.highscore_key = highscore_key
        self.last_user_key = last_user_key
        self.now = now

    @classmethod
    def from_config(cls, config) -> 'ScoreStore':
        return cls(
            highscore_key=config.get('HIGHSCORE_KEY', HIGHSCORE_KEY),
            last_user_key=config.get('LAST_USER_KEY', LAST_USER_KEY),
        )

    def load_best(self) -> Optional[ScoreRecord]:
        raw = StoredValue.get_value(self.highscore_key)
        if raw is None:
            return None
        try:
            return ScoreRecord.from_json(raw)
        except PersistenceReadError as exc:
            logger.warning(f"[score-read] ignoring stored record: {exc}")
            return None

    def record_if_best(self, username: str, elapsed_ms: int, pair_count: int) -> bool:
        """Store the result if it beats the current record. Ties keep the old one."""
        with _record_lock:
            current = self.load_best()
            if current is not None and not elapsed_ms < current.elapsed_ms:
                return False
            record = ScoreRecord(
                username=username,
                elapsed_ms=int(elapsed_ms),
                pair_count=pair_count,
                date=self.now(),
            )
            StoredValue.set_value(self.highscore_key, record.to_json())
        logger.info(f"[score-record] user={username} time_ms={record.elapsed_ms} pairs={pair_count}")
        return True

    def load_last_user(self) -> str:
        return StoredValue.get_value(self.last_user_key) or ''

    def save_last_user(self, username: str) -> None:
        StoredValue.set_value(self.last_user_key, username)

    def clear(self) -> None:
        StoredValue.delete_value(self.highscore_key)
        StoredValue.delete_value(self.last_user_key)
