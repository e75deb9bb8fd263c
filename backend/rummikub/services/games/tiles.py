import random
from typing import Dict, List, Optional, Sequence, Tuple

from rummikub.models import COLORS, Tile


def build_tile_set() -> List[Tile]:
    """Two copies of 1-13 in each of the four colors, plus two jokers."""
    tiles = []
    next_id = 0
    for _ in range(2):
        for color in COLORS:
            for number in range(1, 14):
                tiles.append(Tile(id=f"tile-{next_id}", number=number, color=color))
                next_id += 1
    for _ in range(2):
        tiles.append(Tile(id=f"tile-{next_id}", number=0, color=None, is_joker=True))
        next_id += 1
    return tiles


def shuffle_tiles(tiles: Sequence[Tile], rng: Optional[random.Random] = None) -> List[Tile]:
    """Fisher-Yates shuffle into a new list."""
    rng = rng or random.Random()
    shuffled = list(tiles)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def deal(player_ids: Sequence[str], hand_size: int = 14,
         rng: Optional[random.Random] = None) -> Tuple[Dict[str, List[Tile]], List[Tile]]:
    """Shuffle a fresh tile set and deal ``hand_size`` tiles per player in order.

    The caller guarantees ``hand_size * len(player_ids) < 106``; whatever is
    left over becomes the pool.
    """
    if not player_ids:
        raise ValueError('Cannot deal without players')
    shuffled = shuffle_tiles(build_tile_set(), rng)
    hands = {}
    idx = 0
    for pid in player_ids:
        hands[pid] = shuffled[idx:idx + hand_size]
        idx += hand_size
    return hands, shuffled[idx:]


def parse_tile(label: str, tile_id: Optional[str] = None) -> Tile:
    """Build a tile from a ``color-number`` label or ``joker``."""
    text = label.strip().lower()
    if text == 'joker':
        return Tile(id=tile_id or 'joker', number=0, color=None, is_joker=True)
    color, _, number = text.partition('-')
    if color not in COLORS or not number.isdigit() or not 1 <= int(number) <= 13:
        raise ValueError(f"Unrecognised tile: {label!r}")
    return Tile(id=tile_id or text, number=int(number), color=color)


def sort_hand(tiles: Sequence[Tile]) -> List[Tile]:
    """Sort by color then number, jokers last."""
    return sorted(tiles, key=lambda t: (t.is_joker, COLORS.index(t.color) if t.color else 0, t.number))
