from typing import Iterable, Mapping, Sequence

from rummikub.models import BoardTile, Tile
from .melds import classify_meld, group_board, tiles_of

JOKER_PENALTY = 30


def meld_value(tiles: Sequence[Tile]) -> int:
    """Sum of face values; a joker scores the value it stands in for.

    Invalid melds are worth nothing.
    """
    return classify_meld(tiles).value


def initial_meld_total(board: Mapping[str, BoardTile], turn_start_board: Mapping[str, BoardTile]) -> int:
    """Points from melds the player laid down this turn.

    A meld counts only when every tile in it came from hand this turn, so
    extending a meld already on the table earns nothing toward the threshold.
    """
    total = 0
    for meld in group_board(board.values()):
        if all(bt.id not in turn_start_board for bt in meld):
            total += meld_value(tiles_of(meld))
    return total


def hand_value(tiles: Iterable[Tile]) -> int:
    """Penalty value of tiles left in a hand (jokers count 30)."""
    return sum(JOKER_PENALTY if t.is_joker else t.number for t in tiles)
