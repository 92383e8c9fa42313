from __future__ import annotations

import pytest

from mediashelf.core.errors import SgfParseError
from mediashelf.infrastructure.parsers.sgf import (
    board_size,
    check_move,
    decode_point,
    expand_points,
    load_game,
    main_line,
    main_line_moves,
    parse_sgf,
    replay,
    scan_moves_leniently,
)


def test_parse_properties_and_escapes() -> None:
    roots = parse_sgf("(;GM[1]SZ[19]C[a \\] b\\\nc]AB[aa][bb])")
    root = roots[0]
    assert root.get("GM") == "1"
    assert root.get("C") == "a ] bc"
    assert root.properties["AB"] == ["aa", "bb"]


def test_lowercase_letters_in_identifiers_are_ignored() -> None:
    root = parse_sgf("(;GaMe[1]SiZe[13])")[0]
    assert root.get("GM") == "1"
    assert board_size(root) == 13


def test_main_line_follows_first_variation() -> None:
    root = parse_sgf("(;SZ[9];B[aa](;W[bb];B[cc])(;W[dd]))")[0]
    line = main_line(root)
    assert [node.get("B") or node.get("W") for node in line] == [None, "aa", "bb", "cc"]


def test_collection_with_several_games() -> None:
    roots = parse_sgf("(;EV[one])\n(;EV[two])")
    assert [r.get("EV") for r in roots] == ["one", "two"]


@pytest.mark.parametrize(
    "text",
    ["", "no tree here", "(;B[aa]", "(;C[unterminated)", "(;B)"],
)
def test_malformed_sgf_raises(text: str) -> None:
    with pytest.raises(SgfParseError):
        parse_sgf(text)


def test_board_size_defaults_and_bounds() -> None:
    assert board_size(parse_sgf("(;GM[1])")[0]) == 19
    assert board_size(parse_sgf("(;SZ[x])")[0]) == 19
    assert board_size(parse_sgf("(;SZ[1])")[0]) == 19
    assert board_size(parse_sgf("(;SZ[9])")[0]) == 9


def test_decode_point_handles_passes_and_bounds() -> None:
    assert decode_point("pd", 19) == (15, 3)
    assert decode_point("", 19) is None
    assert decode_point("tt", 19) is None
    assert decode_point("tt", 21) == (19, 19)
    assert decode_point("jj", 9) is None


def test_expand_compressed_rectangle() -> None:
    assert expand_points("aa:bb", 9) == [(0, 0), (1, 0), (0, 1), (1, 1)]
    assert expand_points("cc", 9) == [(2, 2)]


def test_replay_applies_captures() -> None:
    root = parse_sgf("(;SZ[9];W[aa];B[ba];W[ii];B[ab])")[0]
    board = replay(root)
    assert board.stones_of("B") == [(0, 1), (1, 0)]
    assert board.stones_of("W") == [(8, 8)]


def test_replay_to_node_index() -> None:
    root = parse_sgf("(;SZ[9]AB[cc];B[dd];W[ee];B[ff])")[0]
    assert replay(root, 0).stones_of("B") == [(2, 2)]
    assert replay(root, 2).stones_of("W") == [(4, 4)]
    assert len(replay(root).stones_of("B")) == 3


def test_replay_ignores_passes_and_clears_with_ae() -> None:
    root = parse_sgf("(;SZ[9]AB[aa][bb];B[];W[tt];AE[aa])")[0]
    board = replay(root)
    assert board.stones_of("B") == [(1, 1)]
    assert board.stones_of("W") == []


def test_main_line_moves_lists_colors_and_passes() -> None:
    root = parse_sgf("(;SZ[9];B[cc];W[])")[0]
    moves = main_line_moves(root)
    assert [(m.node_index, m.color, m.point) for m in moves] == [(1, "B", (2, 2)), (2, "W", None)]


def test_load_game_scans_truncated_records_leniently() -> None:
    root = load_game("(;SZ[9]PB[a]PW[b];B[ee];W[cc]")
    assert board_size(root) == 9
    moves = main_line_moves(root)
    assert [(m.node_index, m.color, m.point) for m in moves] == [(1, "B", (4, 4)), (2, "W", (2, 2))]
    assert replay(root).stones_of("B") == [(4, 4)]


def test_load_game_prefers_the_strict_reader() -> None:
    root = load_game("(;SZ[13]C[;B[aa\\]];B[dd])")
    assert board_size(root) == 13
    assert [m.point for m in main_line_moves(root)] == [(3, 3)]


def test_lenient_scan_without_moves_gives_empty_default_board() -> None:
    root = scan_moves_leniently("garbage with no tree")
    assert board_size(root) == 19
    assert main_line(root) == [root]
    assert replay(root).stones_of("B") == []


_PUZZLE = "(;SZ[9]AB[cc];B[dd];W[ee];B[ff])"


def test_check_move_correct_answer_plays_the_reply() -> None:
    root = parse_sgf(_PUZZLE)[0]
    result = check_move(root, 0, (3, 3))
    assert result.correct is True
    assert result.expected is not None and result.expected.node_index == 1
    assert result.reply is not None and result.reply.point == (4, 4)
    assert result.node_index == 2
    assert result.solved is False


def test_check_move_wrong_point_keeps_position() -> None:
    root = parse_sgf(_PUZZLE)[0]
    result = check_move(root, 0, (0, 0))
    assert result.correct is False
    assert result.solved is False
    assert result.node_index == 0
    assert result.reply is None
    assert result.expected is not None and result.expected.point == (3, 3)


def test_check_move_final_move_solves_the_puzzle() -> None:
    root = parse_sgf(_PUZZLE)[0]
    result = check_move(root, 2, (5, 5))
    assert result.correct is True
    assert result.reply is None
    assert result.solved is True
    assert result.node_index == 3


def test_check_move_matches_passes_and_reports_end_of_line() -> None:
    root = parse_sgf("(;SZ[9];B[];W[aa])")[0]
    passed = check_move(root, 0, None)
    assert passed.correct is True
    assert passed.solved is True
    assert passed.node_index == 2

    finished = check_move(root, 2, (1, 1))
    assert finished.correct is False
    assert finished.solved is True
    assert finished.expected is None
    assert finished.node_index == 2
