"""
Shared enumerations for rooms, seats and AI difficulty.
"""

from enum import Enum


class Team(str, Enum):
    TEAM1 = 'team1'
    TEAM2 = 'team2'

    @property
    def opponent(self):
        return Team.TEAM2 if self is Team.TEAM1 else Team.TEAM1

    @property
    def label(self):
        return 'Team 1' if self is Team.TEAM1 else 'Team 2'


class Phase(str, Enum):
    WAITING = 'waiting'
    PLAYING = 'playing'
    FINISHED = 'finished'


class GameMode(str, Enum):
    MULTIPLAYER = 'multiplayer'
    VS_AI = 'vs-ai'
    WITH_AI_PARTNER = 'with-ai-partner'


class Difficulty(str, Enum):
    EASY = 'easy'
    MEDIUM = 'medium'
    HARD = 'hard'


class RoundResult(str, Enum):
    WIN = 'win'
    LOSS = 'loss'
    DRAW = 'draw'


# Winner value for a blocked round whose lowest hands span both teams
DRAW = 'draw'
