from __future__ import annotations

from dataclasses import dataclass, field

BLACK = "B"
WHITE = "W"

Point = tuple[int, int]


def opponent(color: str) -> str:
    return WHITE if color == BLACK else BLACK


@dataclass(slots=True)
class GoBoard:
    """Stone positions on a square board, with capture rules for played moves."""

    size: int = 19
    stones: dict[Point, str] = field(default_factory=dict)

    def in_bounds(self, point: Point) -> bool:
        x, y = point
        return 0 <= x < self.size and 0 <= y < self.size

    def neighbors(self, point: Point) -> list[Point]:
        x, y = point
        candidates = ((x - 1, y), (x + 1, y), (x, y - 1), (x, y + 1))
        return [p for p in candidates if self.in_bounds(p)]

    def place(self, color: str, point: Point) -> None:
        """Setup placement: no captures are resolved."""
        if self.in_bounds(point):
            self.stones[point] = color

    def clear(self, point: Point) -> None:
        self.stones.pop(point, None)

    def play(self, color: str, point: Point) -> int:
        """Play a move and return the number of opposing stones captured."""
        if not self.in_bounds(point):
            return 0
        self.stones[point] = color
        captured = 0
        for neighbor in self.neighbors(point):
            if self.stones.get(neighbor) != opponent(color):
                continue
            group, liberties = self._group(neighbor)
            if not liberties:
                for stone in group:
                    del self.stones[stone]
                captured += len(group)
        group, liberties = self._group(point)
        if not liberties:
            # suicide removes the mover's own group
            for stone in group:
                del self.stones[stone]
        return captured

    def stones_of(self, color: str) -> list[Point]:
        return sorted(p for p, c in self.stones.items() if c == color)

    def _group(self, start: Point) -> tuple[set[Point], set[Point]]:
        color = self.stones[start]
        group: set[Point] = {start}
        liberties: set[Point] = set()
        frontier = [start]
        while frontier:
            current = frontier.pop()
            for neighbor in self.neighbors(current):
                occupant = self.stones.get(neighbor)
                if occupant is None:
                    liberties.add(neighbor)
                elif occupant == color and neighbor not in group:
                    group.add(neighbor)
                    frontier.append(neighbor)
        return group, liberties
