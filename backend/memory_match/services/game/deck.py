import random
from dataclasses import dataclass
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class Card:
    card_id: str
    pair_id: int
    asset: str

    def to_dict(self):
        return {'card_id': self.card_id, 'pair_id': self.pair_id, 'asset': self.asset}


def shuffle(items: list, rng: Optional[random.Random] = None) -> list:
    """Fisher-Yates shuffle of ``items`` in place. Returns the same list."""
    rng = rng or random
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def build_deck(assets: Sequence[str], rng: Optional[random.Random] = None) -> List[Card]:
    """Turn N distinct assets into a shuffled deck of 2N cards.

    Both cards of a pair share ``pair_id`` (the asset's index) and the asset
    itself. Uniqueness of ``assets`` is the image source's job and is not
    re-checked here.
    """
    if not assets:
        raise ValueError('a deck needs at least one asset')
    deck = []
    for i, asset in enumerate(assets):
        deck.append(Card(card_id=f"{i}-a", pair_id=i, asset=asset))
        deck.append(Card(card_id=f"{i}-b", pair_id=i, asset=asset))
    return shuffle(deck, rng)
