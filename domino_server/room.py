"""
Authoritative state for one game room.

A Room owns its seats, hands and board. Every mutation goes through the
methods below; callers hold ``room.lock`` for the whole read-modify-write.
The AI layer only ever sees a ``TableView`` snapshot.
"""

import logging
import random
import threading
from typing import Dict, List, NamedTuple, Optional, Tuple, Union

from domino_server.errors import (
    AlreadyStarted, HasLegalMove, IllegalMove, IllegalSide, InvalidRequest, NotInGame,
    NotYourTurn, RoomFull, TeamFull, TileNotInHand, WrongPlayerCount,
)
from domino_server.game_types import DRAW, Difficulty, GameMode, Phase, Team
from domino_server.rules import LEFT, SIDES, has_legal_move, legal_sides, orient_tile
from domino_server.tiles import (
    FULL_SET_SIZE, HAND_SIZE, MAX_PIP, Tile, generate_full_set, hand_score, shuffle,
)

logger = logging.getLogger(__name__)

SEAT_COUNT = 4
TEAM_SIZE = 2
BLOCKED_PASS_COUNT = 4

REASON_DOMINO = 'domino'
REASON_BLOCKED = 'blocked'


class Seat:
    def __init__(self, identity: str, name: str, team: Team, is_ai: bool = False,
                 difficulty: Optional[Difficulty] = None):
        self.identity = identity
        self.name = name
        self.team = team
        self.hand: List[Tile] = []
        self.is_connected = True
        self.is_ai = is_ai
        self.difficulty = difficulty if is_ai else None

    def __repr__(self):
        return f"<Seat {self.name} {self.team.value}{' AI' if self.is_ai else ''}>"

    @property
    def hand_score(self) -> int:
        return hand_score(self.hand)

    def find_tile(self, tile_id: str) -> Optional[Tile]:
        for tile in self.hand:
            if tile.id == tile_id:
                return tile
        return None

    def to_dict(self):
        return {
            'id': self.identity,
            'name': self.name,
            'team': self.team.value,
            'hand': [tile.to_dict() for tile in self.hand],
            'tile_count': len(self.hand),
            'is_connected': self.is_connected,
            'is_ai': self.is_ai,
            'ai_difficulty': self.difficulty.value if self.difficulty else None,
        }


class TableView(NamedTuple):
    """Read-only picture of the table from one seat"""
    seat_index: int
    team: Team
    hand: Tuple[Tile, ...]
    partner_index: Optional[int]
    partner_hand: Tuple[Tile, ...]
    board: Tuple[Tile, ...]
    left_end: Optional[int]
    right_end: Optional[int]
    hand_counts: Tuple[int, ...]
    seat_teams: Tuple[Team, ...]

    @property
    def board_empty(self) -> bool:
        return not self.board

    @property
    def next_index(self) -> int:
        return (self.seat_index + 1) % len(self.seat_teams)

    def opponent_indices(self) -> List[int]:
        return [index for index, team in enumerate(self.seat_teams) if team is not self.team]


class RoundOutcome(NamedTuple):
    winner: Union[Team, str]
    points: int
    reason: str


class FinishedRound(NamedTuple):
    """Detached copy of a finished round, safe to read without the room lock"""
    code: str
    round_number: int
    mode: GameMode
    outcome: RoundOutcome
    snapshot: Dict
    moves: List[Dict]
    has_ai: bool


class Room:
    def __init__(self, code: str, mode: GameMode = GameMode.MULTIPLAYER,
                 ai_difficulty: Difficulty = Difficulty.MEDIUM,
                 rng: Optional[random.Random] = None):
        self.code = code
        self.mode = mode
        self.ai_difficulty = ai_difficulty
        self.rng = rng or random.Random()
        self.lock = threading.RLock()

        self.seats: List[Seat] = []
        self.board: List[Tile] = []
        self.left_end: Optional[int] = None
        self.right_end: Optional[int] = None
        self.current_index = 0
        self.pass_count = 0
        self.phase = Phase.WAITING
        self.scores: Dict[Team, int] = {Team.TEAM1: 0, Team.TEAM2: 0}
        self.winner: Optional[Union[Team, str]] = None
        self.last_action = 'Waiting for players...'

        self.round_number = 0
        self.last_outcome: Optional[RoundOutcome] = None
        self.moves: List[Dict] = []

        # Set by the service while an AI move is scheduled but not yet applied
        self.ai_turn_pending = False

    def __repr__(self):
        return f"<Room {self.code} {self.phase.value} seats={len(self.seats)}>"

    # -- seats -----------------------------------------------------------

    @property
    def board_empty(self) -> bool:
        return not self.board

    @property
    def current_seat(self) -> Optional[Seat]:
        if not self.seats:
            return None
        return self.seats[self.current_index]

    def seat_index(self, identity: str) -> Optional[int]:
        for index, seat in enumerate(self.seats):
            if seat.identity == identity:
                return index
        return None

    def seat_for(self, identity: str) -> Optional[Seat]:
        index = self.seat_index(identity)
        return self.seats[index] if index is not None else None

    def team_seats(self, team: Team) -> List[Seat]:
        return [seat for seat in self.seats if seat.team is team]

    def ai_seats(self) -> List[Seat]:
        return [seat for seat in self.seats if seat.is_ai]

    def connected_humans(self) -> List[Seat]:
        return [seat for seat in self.seats if not seat.is_ai and seat.is_connected]

    def join(self, identity: str, name: str, team: Team, is_ai: bool = False,
             difficulty: Optional[Difficulty] = None) -> Seat:
        if self.seat_index(identity) is not None:
            raise InvalidRequest('Already seated in this game')
        if len(self.team_seats(team)) >= TEAM_SIZE:
            raise TeamFull(f"{team.label} is full!")
        if len(self.seats) >= SEAT_COUNT:
            raise RoomFull()
        if self.phase is not Phase.WAITING:
            raise AlreadyStarted()

        seat = Seat(identity, name, team, is_ai=is_ai, difficulty=difficulty)
        self.seats.append(seat)
        self._order_seats()
        self.last_action = f"{name} joined {team.label}"
        return seat

    def _order_seats(self):
        """Interleave seats as T1, T2, T1, T2 keeping join order within a team"""
        team1 = self.team_seats(Team.TEAM1)
        team2 = self.team_seats(Team.TEAM2)
        ordered = []
        for i in range(TEAM_SIZE):
            if i < len(team1):
                ordered.append(team1[i])
            if i < len(team2):
                ordered.append(team2[i])
        self.seats = ordered

    def open_teams(self) -> List[Team]:
        return [team for team in (Team.TEAM1, Team.TEAM2) if len(self.team_seats(team)) < TEAM_SIZE]

    def mark_disconnected(self, identity: str) -> Optional[Seat]:
        seat = self.seat_for(identity)
        if seat is not None:
            seat.is_connected = False
            self.last_action = f"{seat.name} disconnected"
        return seat

    def replace_identity(self, old_identity: str, new_identity: str) -> Seat:
        seat = self.seat_for(old_identity)
        if seat is None or seat.is_ai:
            raise NotInGame()
        if old_identity != new_identity and self.seat_index(new_identity) is not None:
            raise InvalidRequest('Already seated in this game')
        seat.identity = new_identity
        seat.is_connected = True
        self.last_action = f"{seat.name} reconnected"
        return seat

    # -- round lifecycle -------------------------------------------------

    def start(self, deck: Optional[List[Tile]] = None):
        """Deal a new round. ``deck`` fixes the deal order (seat 0 gets the
        first seven tiles); by default a freshly shuffled set is used."""
        if len(self.seats) != SEAT_COUNT:
            raise WrongPlayerCount()
        if self.phase is Phase.PLAYING:
            raise AlreadyStarted()

        previous_winner = self.winner
        if self.phase is Phase.FINISHED:
            self._reset_round()

        tiles = list(deck) if deck is not None else shuffle(generate_full_set(), self.rng)
        if len(tiles) != FULL_SET_SIZE:
            raise ValueError(f"A deal needs {FULL_SET_SIZE} tiles, got {len(tiles)}")

        for index, seat in enumerate(self.seats):
            seat.hand = tiles[index * HAND_SIZE:(index + 1) * HAND_SIZE]

        self.current_index = self._opening_seat_index(previous_winner)
        self.phase = Phase.PLAYING
        self.round_number += 1
        self.last_action = f"Game started! {self.current_seat.name}'s turn"
        logger.info(f"Room {self.code} round {self.round_number} started, "
                    f"{self.current_seat.name} opens")

    def _reset_round(self):
        self.board = []
        self.left_end = None
        self.right_end = None
        self.pass_count = 0
        self.winner = None
        self.last_outcome = None
        self.moves = []
        for seat in self.seats:
            seat.hand = []

    def _opening_seat_index(self, previous_winner) -> int:
        if isinstance(previous_winner, Team):
            for index, seat in enumerate(self.seats):
                if seat.team is previous_winner:
                    return index

        for double in range(MAX_PIP, -1, -1):
            for index, seat in enumerate(self.seats):
                if any(tile.left == double and tile.right == double for tile in seat.hand):
                    return index
        return 0

    # -- turns -----------------------------------------------------------

    def _require_turn(self, identity: str) -> int:
        index = self.seat_index(identity)
        if index is None:
            raise NotInGame()
        if self.phase is not Phase.PLAYING:
            raise NotYourTurn('No round in progress')
        if index != self.current_index:
            raise NotYourTurn()
        return index

    def play_tile(self, identity: str, tile_id: str, side: str) -> Tile:
        """Place a tile from the acting seat's hand. Returns the tile as laid
        on the board (possibly flipped)."""
        index = self._require_turn(identity)
        seat = self.seats[index]

        tile = seat.find_tile(tile_id)
        if tile is None:
            raise TileNotInHand()

        options = legal_sides(tile, self.left_end, self.right_end, self.board_empty)
        if not options.playable:
            raise IllegalMove()
        if side not in SIDES or (not self.board_empty and side not in options.sides):
            raise IllegalSide(f"Cannot play on {side} side!")

        board_was_empty = self.board_empty
        placement = orient_tile(tile, side, self.left_end, self.right_end, board_was_empty)
        seat.hand.remove(tile)
        if side == LEFT and not board_was_empty:
            self.board.insert(0, placement.tile)
        else:
            self.board.append(placement.tile)
        self.left_end, self.right_end = placement.left_end, placement.right_end

        self.pass_count = 0
        self.moves.append({
            'seat': index,
            'player': seat.name,
            'action': 'play',
            'tile': tile.to_dict(),
            'side': side if not board_was_empty else None,
        })
        self.last_action = f"{seat.name} played {tile!r}"
        self._finish_turn(index)
        return placement.tile

    def pass_turn(self, identity: str):
        index = self._require_turn(identity)
        seat = self.seats[index]

        if has_legal_move(seat.hand, self.left_end, self.right_end, self.board_empty):
            raise HasLegalMove()

        self.pass_count += 1
        self.moves.append({'seat': index, 'player': seat.name, 'action': 'pass'})
        self.last_action = f"{seat.name} passed"
        self._finish_turn(index)

    def _finish_turn(self, index: int):
        if self._check_round_over(index):
            return
        self.current_index = (self.current_index + 1) % SEAT_COUNT
        self.last_action += f" - {self.current_seat.name}'s turn"

    def _check_round_over(self, index: int) -> bool:
        seat = self.seats[index]

        if not seat.hand:
            points = sum(other.hand_score for other in self.seats if other.team is not seat.team)
            self._finish_round(RoundOutcome(seat.team, points, REASON_DOMINO))
            self.last_action = f"{seat.name} wins! {seat.team.label} wins the round!"
            return True

        if self.pass_count >= BLOCKED_PASS_COUNT:
            outcome = self._score_blocked()
            self._finish_round(outcome)
            if outcome.winner == DRAW:
                self.last_action = "Game blocked! It's a draw!"
            else:
                self.last_action = f"Game blocked! {outcome.winner.label} wins!"
            return True

        return False

    def _score_blocked(self) -> RoundOutcome:
        """Lowest individual hand wins for its team; lowest hands on both
        teams is a draw. The winner collects every other seat's pips."""
        totals = [seat.hand_score for seat in self.seats]
        lowest = min(totals)
        lowest_teams = {self.seats[i].team for i, total in enumerate(totals) if total == lowest}
        if len(lowest_teams) > 1:
            return RoundOutcome(DRAW, 0, REASON_BLOCKED)
        points = sum(total for total in totals if total != lowest)
        return RoundOutcome(lowest_teams.pop(), points, REASON_BLOCKED)

    def _finish_round(self, outcome: RoundOutcome):
        self.phase = Phase.FINISHED
        self.winner = outcome.winner
        self.last_outcome = outcome
        if outcome.winner != DRAW:
            self.scores[outcome.winner] += outcome.points
        logger.info(f"Room {self.code} round {self.round_number} over ({outcome.reason}): "
                    f"winner={getattr(outcome.winner, 'value', outcome.winner)} points={outcome.points}")

    def finished_round(self) -> FinishedRound:
        if self.phase is not Phase.FINISHED:
            raise ValueError(f"Room {self.code} has no finished round")
        return FinishedRound(
            code=self.code,
            round_number=self.round_number,
            mode=self.mode,
            outcome=self.last_outcome,
            snapshot=self.to_dict(),
            moves=list(self.moves),
            has_ai=bool(self.ai_seats()),
        )

    # -- views -----------------------------------------------------------

    def table_view(self, seat_index: int) -> TableView:
        seat = self.seats[seat_index]
        partner_index = None
        for index, other in enumerate(self.seats):
            if index != seat_index and other.team is seat.team:
                partner_index = index
                break
        partner_hand = tuple(self.seats[partner_index].hand) if partner_index is not None else ()
        return TableView(
            seat_index=seat_index,
            team=seat.team,
            hand=tuple(seat.hand),
            partner_index=partner_index,
            partner_hand=partner_hand,
            board=tuple(self.board),
            left_end=self.left_end,
            right_end=self.right_end,
            hand_counts=tuple(len(s.hand) for s in self.seats),
            seat_teams=tuple(s.team for s in self.seats),
        )

    def to_dict(self):
        outcome = self.last_outcome
        winner = self.winner.value if isinstance(self.winner, Team) else self.winner
        current = self.current_seat
        return {
            'room_code': self.code,
            'players': [seat.to_dict() for seat in self.seats],
            'board': [tile.to_dict() for tile in self.board],
            'board_ends': {'left': self.left_end, 'right': self.right_end},
            'current_player_index': self.current_index,
            'current_player_id': current.identity if current and self.phase is Phase.PLAYING else None,
            'phase': self.phase.value,
            'winner': winner,
            'last_action': self.last_action,
            'pass_count': self.pass_count,
            'scores': {team.value: score for team, score in self.scores.items()},
            'game_mode': self.mode.value,
            'ai_difficulty': self.ai_difficulty.value,
            'round_number': self.round_number,
            'last_round_points': outcome.points if outcome else None,
            'last_round_reason': outcome.reason if outcome else None,
        }
