"""
AI decision engine for computer-controlled seats.

An ``AIPlayer`` is consulted once per turn with a read-only ``TableView`` and
returns the move to make. Moves are ranked by a blend of three scores: a
learned value from a tabular value function, a hand-crafted heuristic, and a
one-ply prediction of the next opponent's reply. The learned table is updated
after each round by walking the round's decisions backwards with a
discounted terminal reward.
"""

import logging
import random
from collections import Counter
from typing import Dict, List, NamedTuple, Optional, Tuple

from domino_server.estimator import estimate_opponent_hands
from domino_server.game_types import Difficulty, RoundResult
from domino_server.room import TableView
from domino_server.rules import count_playable, legal_moves, resulting_ends
from domino_server.strategy import (
    EPSILON_DECAY, EPSILON_FLOOR, HeuristicWeights, personality_for, profile_for,
)
from domino_server.tiles import HAND_SIZE, Tile, hand_score

logger = logging.getLogger(__name__)

EMPTY_END = 'E'

# Signature caps and buckets
MAX_DOUBLES_FEATURE = 3
HAND_POINTS_BUCKET = 10
BOARD_LENGTH_BUCKET = 4
MAX_MOVES_FEATURE = 5

BOTH_ENDS_BONUS = 2.0
REMAINING_POINTS_PENALTY = 0.1
DOUBLE_BONUS = 3.0
PIP_BONUS = 0.3

BLOCKED_OPPONENT_BONUS = 15.0
REPLY_DOUBLE_BONUS = 5.0
REPLY_PIP_BONUS = 0.5
REPLY_FOLLOW_UP_BONUS = 1.0
REPLY_WEIGHT = 0.5


class Move(NamedTuple):
    tile_id: str
    side: str


class ValueTable:
    """State signature -> move signature -> learned value"""

    def __init__(self):
        self._values: Dict[str, Dict[str, float]] = {}

    def __len__(self):
        return sum(len(moves) for moves in self._values.values())

    def get(self, state: str, move: str) -> float:
        return self._values.get(state, {}).get(move, 0.0)

    def update(self, state: str, move: str, target: float, learning_rate: float) -> float:
        old_value = self.get(state, move)
        new_value = old_value + learning_rate * (target - old_value)
        self._values.setdefault(state, {})[move] = new_value
        return new_value

    def states(self) -> int:
        return len(self._values)


def move_signature(tile: Tile, side: str) -> str:
    low, high = tile.key
    return f"{low}-{high}:{side}"


def pip_histogram(hand) -> Counter:
    counts = Counter()
    for tile in hand:
        counts[tile.left] += 1
        counts[tile.right] += 1
    return counts


def state_signature(view: TableView, moves: List[Tuple[Tile, str]]) -> str:
    hand_points = hand_score(view.hand)
    doubles = sum(1 for tile in view.hand if tile.is_double())
    left = EMPTY_END if view.board_empty else view.left_end
    right = EMPTY_END if view.board_empty else view.right_end
    features = (
        f"h{min(len(view.hand), HAND_SIZE)}",
        f"p{hand_points // HAND_POINTS_BUCKET}",
        f"d{min(doubles, MAX_DOUBLES_FEATURE)}",
        f"l{left}",
        f"r{right}",
        f"b{len(view.board) // BOARD_LENGTH_BUCKET}",
        f"m{min(len(moves), MAX_MOVES_FEATURE)}",
    )
    return '|'.join(features)


class AIPlayer:
    def __init__(self, name: str, difficulty: Difficulty = Difficulty.MEDIUM,
                 weights: Optional[HeuristicWeights] = None,
                 learning_enabled: Optional[bool] = None,
                 rng: Optional[random.Random] = None):
        self.name = name
        self.difficulty = Difficulty(difficulty)
        self.profile = profile_for(self.difficulty)

        personality = personality_for(name)
        self.weights = weights or personality.weights or self.profile.heuristic
        self.learning_enabled = personality.learning_enabled if learning_enabled is None else learning_enabled

        self.epsilon = self.profile.epsilon
        self.values = ValueTable()
        self.experience: List[Tuple[str, str]] = []
        self.rng = rng or random.Random()

        self.games_played = 0
        self.wins = 0
        self.losses = 0
        self.draws = 0

    def __repr__(self):
        return f"<AIPlayer {self.name} {self.difficulty.value}>"

    # -- decisions -------------------------------------------------------

    def choose_move(self, view: TableView) -> Optional[Move]:
        """Pick a move for the seat described by ``view``; None means pass"""
        histogram = pip_histogram(view.hand)
        hypothesis = estimate_opponent_hands(view, self.rng)

        moves = legal_moves(view.hand, view.left_end, view.right_end, view.board_empty)
        if not moves:
            return None
        if len(moves) == 1:
            tile, side = moves[0]
            return Move(tile.id, side)

        signature = state_signature(view, moves)

        if self.rng.random() < self.epsilon:
            tile, side = self.rng.choice(moves)
            self._remember(signature, tile, side)
            logger.debug(f"{self.name} explores {tile!r} {side}")
            return Move(tile.id, side)

        best_score = None
        best_move = None
        for tile, side in moves:
            score = self.score_move(view, tile, side, signature, hypothesis, histogram)
            # Strict comparison: the first move found wins ties
            if best_score is None or score > best_score:
                best_score = score
                best_move = (tile, side)

        tile, side = best_move
        self._remember(signature, tile, side)
        logger.debug(f"{self.name} plays {tile!r} {side} (score {best_score:.2f})")
        return Move(tile.id, side)

    def _remember(self, signature: str, tile: Tile, side: str):
        if self.learning_enabled:
            self.experience.append((signature, move_signature(tile, side)))

    def score_move(self, view: TableView, tile: Tile, side: str, signature: str,
                   hypothesis: Dict[int, List[Tile]], histogram: Counter) -> float:
        profile = self.profile
        learned = self.values.get(signature, move_signature(tile, side))
        heuristic = self.heuristic_score(view, tile, side, hypothesis, histogram)
        prediction = self.prediction_score(view, tile, side, hypothesis)
        return (profile.q_weight * learned
                + profile.heuristic_weight * heuristic
                + profile.prediction_weight * prediction)

    def heuristic_score(self, view: TableView, tile: Tile, side: str,
                        hypothesis: Dict[int, List[Tile]], histogram: Counter) -> float:
        weights = self.weights
        left, right = resulting_ends(tile, side, view.left_end, view.right_end, view.board_empty)
        remaining = [t for t in view.hand if t.id != tile.id]

        # Board control: how many of our own tiles still fit each end
        own_left = sum(1 for t in remaining if t.has_value(left))
        own_right = sum(1 for t in remaining if t.has_value(right))
        board_control = own_left + own_right
        if own_left and own_right:
            board_control += BOTH_ENDS_BONUS

        opponent_tiles = [t for hand in hypothesis.values() for t in hand]
        blocking = -count_playable(opponent_tiles, left, right)

        # Variety of pips we keep, using the histogram minus the played tile
        kept = histogram.copy()
        kept[tile.left] -= 1
        kept[tile.right] -= 1
        variety = sum(1 for count in kept.values() if count > 0)
        hand_safety = variety - REMAINING_POINTS_PENALTY * hand_score(remaining)

        tempo = (DOUBLE_BONUS if tile.is_double() else 0.0) + PIP_BONUS * tile.pips

        partnership = count_playable(view.partner_hand, left, right)

        return (weights.board_control * board_control
                + weights.blocking * blocking
                + weights.hand_safety * hand_safety
                + weights.tempo * tempo
                + weights.partnership * partnership)

    def prediction_score(self, view: TableView, tile: Tile, side: str,
                         hypothesis: Dict[int, List[Tile]]) -> float:
        next_index = view.next_index
        if view.seat_teams[next_index] is view.team:
            return 0.0

        left, right = resulting_ends(tile, side, view.left_end, view.right_end, view.board_empty)
        opponent_hand = hypothesis.get(next_index, [])
        replies = legal_moves(opponent_hand, left, right, False)
        if not replies:
            return BLOCKED_OPPONENT_BONUS

        best_reply = None
        for reply, reply_side in replies:
            reply_left, reply_right = resulting_ends(reply, reply_side, left, right, False)
            rest = [t for t in opponent_hand if t.id != reply.id]
            score = ((REPLY_DOUBLE_BONUS if reply.is_double() else 0.0)
                     + REPLY_PIP_BONUS * reply.pips
                     + REPLY_FOLLOW_UP_BONUS * count_playable(rest, reply_left, reply_right))
            if best_reply is None or score > best_reply:
                best_reply = score
        return -REPLY_WEIGHT * best_reply

    # -- learning --------------------------------------------------------

    def learn(self, result: RoundResult, points: int):
        """Credit the round's decisions with the terminal reward, latest first"""
        result = RoundResult(result)
        self.games_played += 1
        if result is RoundResult.WIN:
            self.wins += 1
            reward = float(points)
        elif result is RoundResult.LOSS:
            self.losses += 1
            reward = -float(points)
        else:
            self.draws += 1
            reward = 0.0

        if not self.learning_enabled:
            self.experience = []
            return

        for signature, move in reversed(self.experience):
            self.values.update(signature, move, reward, self.profile.learning_rate)
            reward *= self.profile.discount

        logger.info(f"{self.name} learned from {len(self.experience)} decisions "
                    f"({result.value}, {points} points)")
        self.experience = []
        self.epsilon = max(EPSILON_FLOOR, self.epsilon * EPSILON_DECAY)

    def stats(self):
        win_rate = (self.wins / self.games_played * 100) if self.games_played > 0 else 0
        return {
            'name': self.name,
            'difficulty': self.difficulty.value,
            'learning_enabled': self.learning_enabled,
            'epsilon': round(self.epsilon, 4),
            'games_played': self.games_played,
            'wins': self.wins,
            'losses': self.losses,
            'draws': self.draws,
            'win_rate': round(win_rate, 2),
            'table_states': self.values.states(),
            'table_entries': len(self.values),
            'weights': self.weights.to_dict(),
        }
