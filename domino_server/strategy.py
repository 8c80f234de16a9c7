"""
Difficulty profiles and named AI personalities.

Profiles are plain data: each difficulty maps to one record of heuristic
factor weights, exploration rate and the three blend weights used when
ranking moves. The three difficulties are tuned independently.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from domino_server.game_types import Difficulty

LEARNING_RATE = 0.1
DISCOUNT_FACTOR = 0.9
EPSILON_DECAY = 0.995
EPSILON_FLOOR = 0.02


@dataclass(frozen=True)
class HeuristicWeights:
    board_control: float
    blocking: float
    hand_safety: float
    tempo: float
    partnership: float

    def to_dict(self):
        return {
            'board_control': self.board_control,
            'blocking': self.blocking,
            'hand_safety': self.hand_safety,
            'tempo': self.tempo,
            'partnership': self.partnership,
        }


@dataclass(frozen=True)
class DifficultyProfile:
    heuristic: HeuristicWeights
    epsilon: float
    q_weight: float
    heuristic_weight: float
    prediction_weight: float
    learning_rate: float = LEARNING_RATE
    discount: float = DISCOUNT_FACTOR


PROFILES: Dict[Difficulty, DifficultyProfile] = {
    # Greedy and noisy: dumps heavy tiles, ignores what it has learned
    Difficulty.EASY: DifficultyProfile(
        heuristic=HeuristicWeights(board_control=0.6, blocking=0.2, hand_safety=0.3,
                                   tempo=1.5, partnership=0.1),
        epsilon=0.3,
        q_weight=0.0,
        heuristic_weight=1.0,
        prediction_weight=0.2,
    ),
    Difficulty.MEDIUM: DifficultyProfile(
        heuristic=HeuristicWeights(board_control=1.0, blocking=0.8, hand_safety=0.6,
                                   tempo=1.0, partnership=0.6),
        epsilon=0.15,
        q_weight=0.4,
        heuristic_weight=1.0,
        prediction_weight=0.6,
    ),
    # Trusts its value table, plays for control and for its partner
    Difficulty.HARD: DifficultyProfile(
        heuristic=HeuristicWeights(board_control=1.4, blocking=1.5, hand_safety=0.9,
                                   tempo=0.5, partnership=1.2),
        epsilon=0.05,
        q_weight=1.0,
        heuristic_weight=0.8,
        prediction_weight=1.0,
    ),
}


def profile_for(difficulty: Difficulty) -> DifficultyProfile:
    try:
        return PROFILES[Difficulty(difficulty)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown AI difficulty: {difficulty}")


@dataclass(frozen=True)
class Personality:
    """Fixed behaviour attached to an AI seat name"""
    weights: Optional[HeuristicWeights] = None
    learning_enabled: bool = True
    description: str = ''


AI_NAMES = [
    'Bot Alpha',
    'Bot Beta',
    'Bot Gamma',
    'Bot Delta',
]

PERSONALITIES: Dict[str, Personality] = {
    'Bot Gamma': Personality(
        weights=HeuristicWeights(board_control=0.8, blocking=2.0, hand_safety=0.7,
                                 tempo=0.6, partnership=0.4),
        description='blocker',
    ),
    'Bot Delta': Personality(
        weights=HeuristicWeights(board_control=1.2, blocking=0.6, hand_safety=1.0,
                                 tempo=0.8, partnership=1.6),
        learning_enabled=False,
        description='frozen team player',
    ),
}


def personality_for(name: str) -> Personality:
    return PERSONALITIES.get(name, Personality())
