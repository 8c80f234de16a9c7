import random
from typing import Iterable, List, Optional

MAX_PIP = 6
HAND_SIZE = 7
FULL_SET_SIZE = 28


class Tile:
    """A domino piece. Equality follows the tile id, not the pips, so two
    tiles with the same values from different sets stay distinguishable."""

    def __init__(self, left: int, right: int, tile_id: Optional[str] = None):
        if not (0 <= left <= MAX_PIP and 0 <= right <= MAX_PIP):
            raise ValueError(f"Tile out of range: {left}|{right}")
        self.left = left
        self.right = right
        self.id = tile_id if tile_id is not None else f"domino-{left}-{right}"

    def __repr__(self):
        return f"[{self.left}|{self.right}]"

    def __eq__(self, other):
        if not isinstance(other, Tile):
            return False
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    @property
    def pips(self) -> int:
        return self.left + self.right

    @property
    def key(self):
        """Orientation-free value pair, low pip first"""
        return (min(self.left, self.right), max(self.left, self.right))

    def is_double(self):
        return self.left == self.right

    def has_value(self, value: int):
        return self.left == value or self.right == value

    def get_other_value(self, value: int):
        if self.left == value:
            return self.right
        elif self.right == value:
            return self.left
        return None

    def flipped(self) -> 'Tile':
        return Tile(self.right, self.left, self.id)

    def to_dict(self):
        return {'id': self.id, 'left': self.left, 'right': self.right}


def generate_full_set() -> List[Tile]:
    """Create a standard double-six domino set (28 tiles)"""
    tiles = []
    tile_number = 0
    for i in range(MAX_PIP + 1):
        for j in range(i, MAX_PIP + 1):
            tiles.append(Tile(i, j, f"domino-{tile_number}"))
            tile_number += 1
    return tiles


def shuffle(tiles: Iterable[Tile], rng: Optional[random.Random] = None) -> List[Tile]:
    """Return a shuffled copy; the caller's sequence is left untouched"""
    shuffled = list(tiles)
    (rng or random).shuffle(shuffled)
    return shuffled


def hand_score(hand: Iterable[Tile]) -> int:
    return sum(tile.pips for tile in hand)
