"""
Legality and layout rules for a two-ended domino line.

Every placement, human or AI, goes through ``orient_tile`` so the open end
left behind by a tile is always computed the same way.
"""

from typing import Iterable, List, NamedTuple, Optional, Tuple

from domino_server.tiles import Tile

LEFT = 'left'
RIGHT = 'right'
SIDES = (LEFT, RIGHT)


class PlayOptions(NamedTuple):
    playable: bool
    sides: Tuple[str, ...]


class Placement(NamedTuple):
    tile: Tile
    left_end: int
    right_end: int


def legal_sides(tile: Tile, left_end: Optional[int], right_end: Optional[int],
                board_empty: bool) -> PlayOptions:
    """Check which ends of the board a tile can be played on"""
    if board_empty:
        return PlayOptions(True, SIDES)

    sides = []
    if tile.has_value(left_end):
        sides.append(LEFT)
    if tile.has_value(right_end):
        sides.append(RIGHT)
    return PlayOptions(bool(sides), tuple(sides))


def orient_tile(tile: Tile, side: str, left_end: Optional[int], right_end: Optional[int],
                board_empty: bool) -> Placement:
    """Orient a tile for the given side and return the new open ends.

    The caller is expected to have checked legality first.
    """
    if board_empty:
        return Placement(tile, tile.left, tile.right)

    if side == LEFT:
        # The tile's right value must touch the current left end
        placed = tile if tile.right == left_end else tile.flipped()
        return Placement(placed, placed.left, right_end)

    if side == RIGHT:
        placed = tile if tile.left == right_end else tile.flipped()
        return Placement(placed, left_end, placed.right)

    raise ValueError(f"Unknown side: {side}")


def resulting_ends(tile: Tile, side: str, left_end: Optional[int], right_end: Optional[int],
                   board_empty: bool) -> Tuple[int, int]:
    placement = orient_tile(tile, side, left_end, right_end, board_empty)
    return placement.left_end, placement.right_end


def legal_moves(hand: Iterable[Tile], left_end: Optional[int], right_end: Optional[int],
                board_empty: bool) -> List[Tuple[Tile, str]]:
    """All (tile, side) pairs in hand order, left before right"""
    moves = []
    for tile in hand:
        options = legal_sides(tile, left_end, right_end, board_empty)
        for side in options.sides:
            moves.append((tile, side))
    return moves


def has_legal_move(hand: Iterable[Tile], left_end: Optional[int], right_end: Optional[int],
                   board_empty: bool) -> bool:
    return any(legal_sides(tile, left_end, right_end, board_empty).playable for tile in hand)


def count_playable(tiles: Iterable[Tile], left_end: int, right_end: int) -> int:
    """Number of tiles that match at least one of the two ends"""
    return sum(1 for tile in tiles if tile.has_value(left_end) or tile.has_value(right_end))
