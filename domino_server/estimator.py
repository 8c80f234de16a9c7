"""
Opponent-hand estimation for AI seats.

Each call draws one fresh, uniformly random completion of the unseen tiles
consistent with the public hand counts. Nothing is carried between calls.
"""

import random
from typing import Dict, List, Optional

from domino_server.room import TableView
from domino_server.tiles import Tile, generate_full_set, shuffle


def unseen_tiles(view: TableView) -> List[Tile]:
    """Tiles not in the AI's hand, its partner's hand, or on the board"""
    visible = {tile.key for tile in view.hand}
    visible.update(tile.key for tile in view.partner_hand)
    visible.update(tile.key for tile in view.board)
    return [tile for tile in generate_full_set() if tile.key not in visible]


def estimate_opponent_hands(view: TableView, rng: Optional[random.Random] = None) -> Dict[int, List[Tile]]:
    """Deal the unseen tiles round-robin to the opponent seats, up to each
    opponent's current hand size."""
    opponents = view.opponent_indices()
    hands: Dict[int, List[Tile]] = {index: [] for index in opponents}

    pending = [index for index in opponents if view.hand_counts[index] > 0]
    position = 0
    for tile in shuffle(unseen_tiles(view), rng):
        if not pending:
            break
        position %= len(pending)
        index = pending[position]
        hands[index].append(tile)
        if len(hands[index]) >= view.hand_counts[index]:
            # The next seat in rotation slides into this position
            pending.pop(position)
        else:
            position += 1
    return hands
