from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from mediashelf.core.errors import SgfParseError
from mediashelf.domain.models.board import BLACK, WHITE, GoBoard, Point

DEFAULT_BOARD_SIZE = 19
MAX_BOARD_SIZE = 52

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SgfNode:
    properties: dict[str, list[str]] = field(default_factory=dict)
    children: list["SgfNode"] = field(default_factory=list)

    def get(self, ident: str) -> str | None:
        values = self.properties.get(ident)
        return values[0] if values else None


def parse_sgf(text: str) -> list[SgfNode]:
    """Parse an SGF collection and return the root node of every game tree."""
    return _SgfReader(text).read_collection()


def main_line(root: SgfNode) -> list[SgfNode]:
    nodes = [root]
    current = root
    while current.children:
        current = current.children[0]
        nodes.append(current)
    return nodes


@dataclass(slots=True)
class SgfMove:
    node_index: int
    color: str
    point: Point | None


def main_line_moves(root: SgfNode) -> list[SgfMove]:
    """Moves along the main line; ``point`` is None for a pass."""
    size = board_size(root)
    moves: list[SgfMove] = []
    for index, node in enumerate(main_line(root)):
        for color in (BLACK, WHITE):
            for value in node.properties.get(color, []):
                moves.append(SgfMove(node_index=index, color=color, point=decode_point(value, size)))
    return moves


def board_size(root: SgfNode) -> int:
    raw = (root.get("SZ") or "").split(":", 1)[0].strip()
    try:
        size = int(raw)
    except ValueError:
        return DEFAULT_BOARD_SIZE
    if size < 2 or size > MAX_BOARD_SIZE:
        return DEFAULT_BOARD_SIZE
    return size


def decode_point(value: str, size: int) -> Point | None:
    """Convert an SGF coordinate such as ``pd`` to ``(x, y)``; passes give None."""
    value = value.strip()
    if len(value) != 2:
        return None
    if value == "tt" and size <= 19:
        return None
    x = _coordinate(value[0])
    y = _coordinate(value[1])
    if x is None or y is None or x >= size or y >= size:
        return None
    return x, y


def expand_points(value: str, size: int) -> list[Point]:
    """Expand a point or a compressed ``aa:cc`` rectangle."""
    if ":" not in value:
        point = decode_point(value, size)
        return [point] if point else []
    first, second = value.split(":", 1)
    a = decode_point(first, size)
    b = decode_point(second, size)
    if a is None or b is None:
        return []
    xs = range(min(a[0], b[0]), max(a[0], b[0]) + 1)
    ys = range(min(a[1], b[1]), max(a[1], b[1]) + 1)
    return [(x, y) for y in ys for x in xs]


def replay(root: SgfNode, node_index: int | None = None) -> GoBoard:
    """Replay the main line up to ``node_index`` (inclusive; None means the end)."""
    size = board_size(root)
    board = GoBoard(size=size)
    for index, node in enumerate(main_line(root)):
        if node_index is not None and index > node_index:
            break
        for value in node.properties.get("AE", []):
            for point in expand_points(value, size):
                board.clear(point)
        for ident, color in (("AB", BLACK), ("AW", WHITE)):
            for value in node.properties.get(ident, []):
                for point in expand_points(value, size):
                    board.place(color, point)
        for color in (BLACK, WHITE):
            for value in node.properties.get(color, []):
                point = decode_point(value, size)
                if point is not None:
                    board.play(color, point)
    return board


_LENIENT_SIZE_RE = re.compile(r"\bSZ\[(\d+)")
_LENIENT_MOVE_RE = re.compile(r";\s*(B|W)\[([^\]]*)\]")


def scan_moves_leniently(text: str) -> SgfNode:
    """Build a single-line game from ``;B[..]``/``;W[..]`` moves and ``SZ``.

    Used for records the strict reader rejects, such as truncated files.
    """
    root = SgfNode()
    size_match = _LENIENT_SIZE_RE.search(text)
    if size_match:
        root.properties["SZ"] = [size_match.group(1)]
    current = root
    for match in _LENIENT_MOVE_RE.finditer(text):
        node = SgfNode(properties={match.group(1): [match.group(2)]})
        current.children.append(node)
        current = node
    return root


def load_game(text: str) -> SgfNode:
    """First game tree of ``text``, falling back to a lenient move scan."""
    try:
        return parse_sgf(text)[0]
    except SgfParseError as exc:
        logger.debug("Strict SGF parse failed (%s); scanning moves leniently", exc)
        return scan_moves_leniently(text)


@dataclass(slots=True)
class PuzzleCheck:
    correct: bool
    expected: SgfMove | None
    reply: SgfMove | None
    solved: bool
    node_index: int


def check_move(root: SgfNode, node_index: int, point: Point | None) -> PuzzleCheck:
    """Compare ``point`` with the next main-line move after ``node_index``.

    On a correct answer the opponent's reply, if any, is played as well and
    ``node_index`` moves past it. ``solved`` means no move is left to find.
    """
    moves = main_line_moves(root)
    expected = _next_move(moves, node_index)
    if expected is None:
        return PuzzleCheck(correct=False, expected=None, reply=None, solved=True, node_index=node_index)
    if expected.point != point:
        return PuzzleCheck(correct=False, expected=expected, reply=None, solved=False, node_index=node_index)
    reply = _next_move(moves, expected.node_index)
    last = reply or expected
    return PuzzleCheck(
        correct=True,
        expected=expected,
        reply=reply,
        solved=_next_move(moves, last.node_index) is None,
        node_index=last.node_index,
    )


def _next_move(moves: list[SgfMove], node_index: int) -> SgfMove | None:
    return next((move for move in moves if move.node_index > node_index), None)


def _coordinate(ch: str) -> int | None:
    if "a" <= ch <= "z":
        return ord(ch) - ord("a")
    if "A" <= ch <= "Z":
        return ord(ch) - ord("A") + 26
    return None


class _SgfReader:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def read_collection(self) -> list[SgfNode]:
        trees: list[SgfNode] = []
        while True:
            start = self.text.find("(", self.pos)
            if start < 0:
                break
            self.pos = start
            trees.append(self._read_tree())
        if not trees:
            raise SgfParseError("No SGF game tree found")
        return trees

    def _peek(self) -> str:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _expect(self, ch: str) -> None:
        if self._peek() != ch:
            raise SgfParseError(f"Expected {ch!r} at offset {self.pos}")
        self.pos += 1

    def _read_tree(self) -> SgfNode:
        self._expect("(")
        first: SgfNode | None = None
        last: SgfNode | None = None
        while self._peek() == ";":
            node = self._read_node()
            if last is None:
                first = node
            else:
                last.children.append(node)
            last = node
        if first is None or last is None:
            raise SgfParseError(f"Game tree without nodes at offset {self.pos}")
        while self._peek() == "(":
            last.children.append(self._read_tree())
        self._expect(")")
        return first

    def _read_node(self) -> SgfNode:
        self._expect(";")
        node = SgfNode()
        while self._peek().isalpha():
            start = self.pos
            while self.pos < len(self.text) and self.text[self.pos].isalpha():
                self.pos += 1
            # FF[3] allowed lower-case letters inside identifiers
            ident = "".join(ch for ch in self.text[start : self.pos] if ch.isupper())
            values: list[str] = []
            while self._peek() == "[":
                values.append(self._read_value())
            if not values:
                raise SgfParseError(f"Property {ident or '?'} without value at offset {self.pos}")
            if ident:
                node.properties.setdefault(ident, []).extend(values)
        return node

    def _read_value(self) -> str:
        self.pos += 1
        buf: list[str] = []
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch == "\\":
                self.pos += 1
                if self.pos >= len(text):
                    break
                escaped = text[self.pos]
                self.pos += 1
                if escaped == "\r" and self.pos < len(text) and text[self.pos] == "\n":
                    self.pos += 1
                elif escaped not in "\r\n":
                    buf.append(escaped)
                continue
            if ch == "]":
                self.pos += 1
                return "".join(buf)
            buf.append(ch)
            self.pos += 1
        raise SgfParseError("Unterminated property value")
