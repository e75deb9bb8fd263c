"""Meld classification.

Tiles are always given in board order (left to right). A run must read in
ascending numeric order; jokers take the value of the slot they occupy.
Validity is returned as a value, never raised.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from rummikub.models import BoardTile, Position, Tile

RUN = 'run'
GROUP = 'group'

MIN_MELD = 3
MAX_GROUP = 4
MAX_RUN = 13

OUT_OF_ORDER = 'Tiles must be placed in numeric order (left to right)'


@dataclass(frozen=True)
class MeldCheck:
    kind: Optional[str]
    is_valid: bool
    values: Tuple[int, ...] = ()
    reason: Optional[str] = None

    @property
    def value(self) -> int:
        return sum(self.values) if self.is_valid else 0

    def to_dict(self):
        return {
            'kind': self.kind,
            'isValid': self.is_valid,
            'value': self.value,
            'values': list(self.values),
            'reason': self.reason,
        }


def _run_start(tiles: Sequence[Tile]) -> Optional[int]:
    """Number the first slot must carry for ``tiles`` to read as a run, or None."""
    regulars = [(i, t) for i, t in enumerate(tiles) if not t.is_joker]
    if not regulars:
        return None
    if len({t.color for _, t in regulars}) != 1:
        return None
    starts = {t.number - i for i, t in regulars}
    if len(starts) != 1:
        return None
    start = starts.pop()
    if start < 1 or start + len(tiles) - 1 > MAX_RUN:
        return None
    return start


def _group_number(tiles: Sequence[Tile]) -> Optional[int]:
    regulars = [t for t in tiles if not t.is_joker]
    if not regulars or len(tiles) > MAX_GROUP:
        return None
    if len({t.number for t in regulars}) != 1:
        return None
    colors = [t.color for t in regulars]
    if len(set(colors)) != len(colors):
        return None
    return regulars[0].number


def _would_run_if_sorted(tiles: Sequence[Tile]) -> bool:
    regulars = sorted((t for t in tiles if not t.is_joker), key=lambda t: t.number)
    if len(regulars) < 2 or len({t.color for t in regulars}) != 1:
        return False
    jokers = [t for t in tiles if t.is_joker]
    # Put the jokers into the gaps first, leftovers on the end
    ordered = [regulars[0]]
    for prev, cur in zip(regulars, regulars[1:]):
        gap = cur.number - prev.number - 1
        while gap > 0 and jokers:
            ordered.append(jokers.pop())
            gap -= 1
        ordered.append(cur)
    ordered.extend(jokers)
    return _run_start(ordered) is not None


def classify_meld(tiles: Sequence[Tile]) -> MeldCheck:
    """Strict check: a complete run or group of three or more tiles."""
    if len(tiles) < MIN_MELD:
        return MeldCheck(None, False, reason='A meld needs at least 3 tiles')
    if all(t.is_joker for t in tiles):
        return MeldCheck(None, False, reason='A meld needs at least one numbered tile')

    start = _run_start(tiles)
    if start is not None:
        return MeldCheck(RUN, True, tuple(range(start, start + len(tiles))))

    number = _group_number(tiles)
    if number is not None:
        return MeldCheck(GROUP, True, (number,) * len(tiles))

    if _would_run_if_sorted(tiles):
        return MeldCheck(None, False, reason=OUT_OF_ORDER)
    return MeldCheck(None, False, reason='Tiles do not form a run or a group')


def can_become_valid_meld(tiles: Sequence[Tile]) -> bool:
    """Partial check for an in-progress meld of any size.

    True when more tiles added at either end could still complete it.
    """
    if len(tiles) <= 1:
        return True
    if all(t.is_joker for t in tiles):
        return len(tiles) <= MAX_RUN
    return _run_start(tiles) is not None or _group_number(tiles) is not None


def partial_reason(tiles: Sequence[Tile]) -> str:
    if _would_run_if_sorted(tiles):
        return OUT_OF_ORDER
    return 'Tile does not form a valid meld with existing tiles'


# ---- Spatial grouping ----

def group_board(board: Iterable[BoardTile]) -> List[List[BoardTile]]:
    """Split the board into melds: maximal same-row runs of adjacent cells."""
    rows: Dict[int, List[BoardTile]] = {}
    for bt in board:
        rows.setdefault(bt.position.y, []).append(bt)
    melds = []
    for y in sorted(rows):
        row = sorted(rows[y], key=lambda bt: bt.position.x)
        current = [row[0]]
        for bt in row[1:]:
            if bt.position.x == current[-1].position.x + 1:
                current.append(bt)
            else:
                melds.append(current)
                current = [bt]
        melds.append(current)
    return melds


def meld_at(board: Iterable[BoardTile], position: Position) -> List[BoardTile]:
    """The meld containing ``position``, or an empty list if the cell is free."""
    for meld in group_board(board):
        if any(bt.position == position for bt in meld):
            return meld
    return []


def tiles_of(meld: Sequence[BoardTile]) -> List[Tile]:
    return [bt.tile for bt in meld]


def invalid_melds(board: Iterable[BoardTile]) -> List[List[BoardTile]]:
    return [m for m in group_board(board) if not classify_meld(tiles_of(m)).is_valid]


def board_is_valid(board: Iterable[BoardTile]) -> bool:
    """Every tile on the board belongs to a complete valid meld."""
    return not invalid_melds(board)
