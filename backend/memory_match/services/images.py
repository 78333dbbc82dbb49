"""Image catalog backed by the PokeAPI official artwork sprites."""
import logging
import random
import time
from typing import Callable, List, Optional

import requests

from memory_match.services.game.errors import InsufficientAssets

logger = logging.getLogger(__name__)

POKEAPI_URL = 'https://pokeapi.co/api/v2/pokemon'
POKEMON_MAX_ID = 898


class PokeApiImageSource:
    """Supplies unique artwork URLs for random Pokemon.

    Each lookup is a single GET with its own timeout, cut short when less
    than that is left of the overall budget. Failed lookups, entries
    without official artwork and duplicates are skipped. Probing stops after
    ``n * attempt_multiplier`` attempts or once ``budget_sec`` has elapsed,
    whichever comes first.
    """

    def __init__(
        self,
        base_url: str = POKEAPI_URL,
        max_id: int = POKEMON_MAX_ID,
        timeout: float = 5.0,
        attempt_multiplier: int = 12,
        budget_sec: float = 0,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip('/')
        self.max_id = max_id
        self.timeout = timeout
        self.attempt_multiplier = attempt_multiplier
        self.budget_sec = budget_sec
        self.session = session or requests.Session()
        self.rng = rng or random.Random()
        self.clock = clock

    @classmethod
    def from_config(cls, config) -> 'PokeApiImageSource':
        return cls(
            base_url=config.get('POKEAPI_URL', POKEAPI_URL),
            max_id=int(config.get('POKEMON_MAX_ID', POKEMON_MAX_ID)),
            timeout=float(config.get('ASSET_TIMEOUT_SEC', 5.0)),
            attempt_multiplier=int(config.get('ASSET_ATTEMPT_MULTIPLIER', 12)),
            budget_sec=float(config.get('ASSET_FETCH_BUDGET_SEC', 0)),
        )

    def fetch_unique_assets(self, n: int) -> List[str]:
        max_attempts = n * self.attempt_multiplier
        deadline = self.clock() + self.budget_sec if self.budget_sec else None
        urls: List[str] = []
        attempts = 0
        while len(urls) < n and attempts < max_attempts:
            timeout = self.timeout
            if deadline is not None:
                remaining = deadline - self.clock()
                if remaining <= 0:
                    logger.warning(f"[asset-budget] gave up after {attempts} attempts, {len(urls)}/{n} loaded")
                    break
                timeout = min(timeout, remaining)
            attempts += 1
            pokemon_id = self.rng.randint(1, self.max_id)
            url = self._lookup(pokemon_id, timeout)
            if url and url not in urls:
                urls.append(url)
        if len(urls) < n:
            raise InsufficientAssets(requested=n, obtained=len(urls), attempts=attempts)
        logger.info(f"[assets-loaded] count={n} attempts={attempts}")
        return urls

    def _lookup(self, pokemon_id: int, timeout: float) -> Optional[str]:
        try:
            res = self.session.get(f"{self.base_url}/{pokemon_id}", timeout=timeout)
            res.raise_for_status()
            data = res.json()
            return data['sprites']['other']['official-artwork']['front_default']
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            logger.warning(f"[asset-lookup-failed] id={pokemon_id}: {exc}")
            return None
