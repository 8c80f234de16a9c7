"""
Database models for finished rounds and AI performance using SQLAlchemy ORM.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey, Float
from sqlalchemy.orm import declarative_base, relationship
import json

Base = declarative_base()


class RoundRecord(Base):
    """Model for storing the outcome of a finished round"""
    __tablename__ = 'round_records'

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_code = Column(String(32), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    game_mode = Column(String(20), nullable=False)
    winner = Column(String(10), nullable=False)  # 'team1', 'team2' or 'draw'
    reason = Column(String(10), nullable=False)  # 'domino' or 'blocked'
    points = Column(Integer, default=0)
    team1_score = Column(Integer, default=0)
    team2_score = Column(Integer, default=0)
    has_ai = Column(Boolean, default=False)
    final_state = Column(Text, nullable=True)  # JSON string of the table snapshot
    finished_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    moves = relationship("MoveRecord", back_populates="round", cascade="all, delete-orphan",
                         order_by="MoveRecord.move_number")

    def to_dict(self):
        """Convert to dictionary for JSON serialization"""
        return {
            'id': self.id,
            'room_code': self.room_code,
            'round_number': self.round_number,
            'game_mode': self.game_mode,
            'winner': self.winner,
            'reason': self.reason,
            'points': self.points,
            'scores': {'team1': self.team1_score, 'team2': self.team2_score},
            'has_ai': self.has_ai,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'move_count': len(self.moves) if self.moves else 0
        }

    def set_final_state(self, state_dict):
        self.final_state = json.dumps(state_dict)

    def get_final_state(self):
        if self.final_state:
            return json.loads(self.final_state)
        return None


class MoveRecord(Base):
    """Model for storing individual plays and passes of a round"""
    __tablename__ = 'move_records'

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_id = Column(Integer, ForeignKey('round_records.id'), nullable=False)
    move_number = Column(Integer, nullable=False)
    seat = Column(Integer, nullable=False)
    player_name = Column(String(64), nullable=False)
    action = Column(String(10), nullable=False)  # 'play' or 'pass'
    tile_left = Column(Integer, nullable=True)
    tile_right = Column(Integer, nullable=True)
    side = Column(String(10), nullable=True)  # 'left', 'right', or None for the opening tile

    round = relationship("RoundRecord", back_populates="moves")

    def to_dict(self):
        """Convert to dictionary for JSON serialization"""
        tile = None
        if self.tile_left is not None:
            tile = {'left': self.tile_left, 'right': self.tile_right}
        return {
            'id': self.id,
            'round_id': self.round_id,
            'move_number': self.move_number,
            'seat': self.seat,
            'player': self.player_name,
            'action': self.action,
            'tile': tile,
            'side': self.side
        }


class AIPerformance(Base):
    """Model for storing running statistics of one AI personality"""
    __tablename__ = 'ai_performance'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(64), nullable=False)
    difficulty = Column(String(10), nullable=False)
    games_played = Column(Integer, default=0)
    wins = Column(Integer, default=0)
    losses = Column(Integer, default=0)
    draws = Column(Integer, default=0)
    epsilon = Column(Float, default=0.0)
    table_entries = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        """Convert to dictionary for JSON serialization"""
        games = self.games_played or 0
        win_rate = (self.wins / games * 100) if games > 0 else 0
        return {
            'name': self.name,
            'difficulty': self.difficulty,
            'games_played': games,
            'wins': self.wins,
            'losses': self.losses,
            'draws': self.draws,
            'win_rate': round(win_rate, 2),
            'epsilon': self.epsilon,
            'table_entries': self.table_entries,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def record_result(self, winner, team, stats):
        """Fold one finished round into the running totals"""
        self.games_played = (self.games_played or 0) + 1
        if winner == 'draw':
            self.draws = (self.draws or 0) + 1
        elif winner == team:
            self.wins = (self.wins or 0) + 1
        else:
            self.losses = (self.losses or 0) + 1

        self.epsilon = stats.get('epsilon', self.epsilon)
        self.table_entries = stats.get('table_entries', self.table_entries)
        self.updated_at = datetime.utcnow()
