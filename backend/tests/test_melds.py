from rummikub.models import BoardTile, Position
from rummikub.services.games.melds import (
    GROUP, OUT_OF_ORDER, RUN, board_is_valid, can_become_valid_meld, classify_meld, group_board, meld_at,
)
from rummikub.services.games.scoring import hand_value, initial_meld_total, meld_value
from rummikub.services.games.tiles import parse_tile


def tiles(*labels):
    return [parse_tile(label, tile_id=f"m{i}") for i, label in enumerate(labels)]


def board(*placed):
    result = {}
    for i, (label, x, y) in enumerate(placed):
        tile = parse_tile(label, tile_id=f"b{i}")
        result[tile.id] = BoardTile(tile, Position(x, y))
    return result


def test_simple_run():
    check = classify_meld(tiles('red-3', 'red-4', 'red-5'))
    assert check.is_valid and check.kind == RUN
    assert check.value == 12


def test_joker_fills_gap_in_run():
    check = classify_meld(tiles('red-3', 'joker', 'red-5'))
    assert check.is_valid and check.kind == RUN
    assert check.values == (3, 4, 5)
    assert meld_value(tiles('red-3', 'joker', 'red-5')) == 12


def test_mixed_colors_are_not_a_run():
    assert not classify_meld(tiles('red-3', 'red-4', 'blue-5')).is_valid


def test_run_must_read_left_to_right():
    check = classify_meld(tiles('red-5', 'red-4', 'red-3'))
    assert not check.is_valid
    assert check.reason == OUT_OF_ORDER
    # joker in the wrong slot
    assert classify_meld(tiles('red-3', 'red-5', 'joker')).reason == OUT_OF_ORDER


def test_run_stays_within_one_to_thirteen():
    assert not classify_meld(tiles('red-12', 'red-13', 'joker')).is_valid
    check = classify_meld(tiles('joker', 'red-12', 'red-13'))
    assert check.is_valid and check.value == 36
    assert not classify_meld(tiles('joker', 'red-1', 'red-2')).is_valid


def test_group():
    check = classify_meld(tiles('red-7', 'blue-7', 'yellow-7'))
    assert check.is_valid and check.kind == GROUP
    assert check.value == 21


def test_group_with_joker_scores_the_substituted_number():
    check = classify_meld(tiles('red-7', 'joker', 'blue-7', 'black-7'))
    assert check.kind == GROUP
    assert check.value == 28


def test_group_rejects_duplicate_colors_and_more_than_four():
    assert not classify_meld(tiles('red-7', 'red-7', 'blue-7')).is_valid
    assert not classify_meld(tiles('red-7', 'blue-7', 'yellow-7', 'black-7', 'red-7')).is_valid
    assert not classify_meld(tiles('red-7', 'blue-7', 'yellow-7', 'black-7', 'joker')).is_valid


def test_short_and_all_joker_melds_are_incomplete():
    assert not classify_meld(tiles('red-3', 'red-4')).is_valid
    assert not classify_meld(tiles('joker', 'joker')).is_valid
    assert meld_value(tiles('red-3', 'red-4')) == 0


def test_partial_check():
    assert can_become_valid_meld(tiles('red-3'))
    assert can_become_valid_meld(tiles('red-3', 'red-4'))
    assert can_become_valid_meld(tiles('red-3', 'joker'))
    assert can_become_valid_meld(tiles('red-7', 'blue-7'))
    assert can_become_valid_meld(tiles('joker', 'joker'))
    assert not can_become_valid_meld(tiles('red-3', 'red-5'))
    assert not can_become_valid_meld(tiles('red-7', 'red-7'))
    # a run here would need a 0, and two numbers rule out a group
    assert not can_become_valid_meld(tiles('joker', 'red-1', 'red-2'))
    assert not can_become_valid_meld(tiles('red-4', 'red-3'))


def test_joker_beside_a_one_can_still_grow_into_a_group():
    assert can_become_valid_meld(tiles('joker', 'red-1'))
    assert classify_meld(tiles('joker', 'red-1', 'blue-1')).kind == GROUP


def test_group_board_splits_rows_and_gaps():
    b = board(('red-1', 0, 0), ('red-2', 1, 0), ('red-3', 2, 0), ('blue-9', 4, 0), ('red-5', 0, 1))
    melds = group_board(b.values())
    assert [[bt.tile.label() for bt in m] for m in melds] == [['red-1', 'red-2', 'red-3'], ['blue-9'], ['red-5']]
    assert [bt.tile.label() for bt in meld_at(b.values(), Position(1, 0))] == ['red-1', 'red-2', 'red-3']
    assert meld_at(b.values(), Position(3, 0)) == []


def test_set_id_is_ignored_for_grouping():
    b = board(('red-1', 0, 0), ('red-2', 1, 0), ('red-3', 2, 0))
    relabelled = [BoardTile(bt.tile, bt.position, set_id=f"set-{i}") for i, bt in enumerate(b.values())]
    assert len(group_board(relabelled)) == 1
    assert board_is_valid(relabelled)


def test_board_validity():
    assert board_is_valid([])
    assert board_is_valid(board(('red-1', 0, 0), ('red-2', 1, 0), ('red-3', 2, 0)).values())
    assert not board_is_valid(board(('red-1', 0, 0), ('red-2', 1, 0), ('red-3', 2, 0), ('blue-4', 3, 0)).values())
    assert not board_is_valid(board(('red-1', 0, 0)).values())


def test_initial_meld_total_only_counts_melds_laid_this_turn():
    after = board(('black-10', 0, 5), ('black-11', 1, 5), ('black-12', 2, 5),
                  ('red-3', 0, 0), ('red-4', 1, 0), ('red-5', 2, 0))
    before = {tid: bt for tid, bt in after.items() if bt.tile.color == 'black'}
    assert initial_meld_total(after, before) == 12


def test_extending_a_meld_already_on_the_table_earns_nothing():
    after = board(('red-10', 0, 0), ('red-11', 1, 0), ('red-12', 2, 0), ('red-13', 3, 0))
    before = {tid: bt for tid, bt in after.items() if bt.tile.number < 13}
    assert meld_value([bt.tile for bt in after.values()]) == 46
    assert initial_meld_total(after, before) == 0


def test_hand_value_counts_jokers_as_thirty():
    assert hand_value(tiles('red-3', 'joker', 'blue-13')) == 46
