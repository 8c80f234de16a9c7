"""
Intent handlers for the game: the single entry point used by the transport
layer. Owns the room directory, the session registry and the AI players, and
drives AI turns through a scheduler after every state change.
"""

import logging
import random
import threading
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from domino_server.ai_player import AIPlayer
from domino_server.directory import InMemoryRoomRepository, SessionRegistry, normalize_room_code
from domino_server.errors import (
    AlreadyStarted, GameError, InvalidRequest, RoomAlreadyExists, RoomFull, RoomNotFound, TeamFull,
)
from domino_server.game_types import DRAW, Difficulty, GameMode, Phase, RoundResult, Team
from domino_server.room import SEAT_COUNT, Room, Seat
from domino_server.scheduling import ImmediateScheduler
from domino_server.strategy import AI_NAMES

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 32

Broadcaster = Callable[[str, str, dict], None]


def parse_enum(enum_cls, value, label):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidRequest(f"Unknown {label}: {value}")


def clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        return 'Player'
    return name.strip()[:MAX_NAME_LENGTH]


class GameService:
    def __init__(self, repository=None, sessions=None, scheduler=None,
                 broadcaster: Optional[Broadcaster] = None,
                 ai_delay: Tuple[float, float] = (0.8, 1.5),
                 round_recorder=None,
                 default_difficulty: Difficulty = Difficulty.MEDIUM,
                 max_rooms: Optional[int] = None,
                 rng: Optional[random.Random] = None):
        self.rooms = repository if repository is not None else InMemoryRoomRepository()
        self.sessions = sessions if sessions is not None else SessionRegistry()
        self.scheduler = scheduler or ImmediateScheduler()
        self.broadcaster = broadcaster
        self.ai_delay = ai_delay
        self.round_recorder = round_recorder
        self.default_difficulty = Difficulty(default_difficulty)
        self.max_rooms = max_rooms
        self.rng = rng or random.Random()

        self.ai_players: Dict[str, AIPlayer] = {}
        # Guards repository membership: creating, seating into and discarding rooms
        self._directory_lock = threading.RLock()
        self._counter_lock = threading.Lock()

        self.rounds_finished = 0
        self.ai_moves = 0

    # -- lookups ---------------------------------------------------------

    def get_room(self, code) -> Room:
        room = self.rooms.get(normalize_room_code(code))
        if room is None:
            raise RoomNotFound()
        return room

    def snapshot(self, code) -> dict:
        room = self.get_room(code)
        with room.lock:
            return room.to_dict()

    def list_rooms(self) -> List[dict]:
        listing = []
        for room in self.rooms:
            with room.lock:
                listing.append({
                    'room_code': room.code,
                    'phase': room.phase.value,
                    'game_mode': room.mode.value,
                    'seats_filled': len(room.seats),
                    'open_teams': [team.value for team in room.open_teams()],
                    'round_number': room.round_number,
                })
        return listing

    def ai_stats(self, code) -> List[dict]:
        room = self.get_room(code)
        with room.lock:
            stats = []
            for index, seat in enumerate(room.seats):
                if seat.is_ai and seat.identity in self.ai_players:
                    entry = self.ai_players[seat.identity].stats()
                    entry['seat'] = index
                    entry['team'] = seat.team.value
                    stats.append(entry)
            return stats

    # -- room creation and seating --------------------------------------

    def _new_room(self, code, mode=GameMode.MULTIPLAYER, difficulty=None) -> Room:
        return Room(code, mode=mode, ai_difficulty=difficulty or self.default_difficulty,
                    rng=random.Random(self.rng.getrandbits(64)))

    def _register(self, room: Room):
        if self.max_rooms and len(self.rooms) >= self.max_rooms:
            self._evict_abandoned_rooms()
        self.rooms.set(room)
        logger.info(f"Room {room.code} created ({room.mode.value})")

    def _evict_abandoned_rooms(self):
        for room in list(self.rooms):
            with room.lock:
                abandoned = not room.connected_humans()
            if abandoned:
                logger.info(f"Evicting abandoned room {room.code}")
                self._discard_room(room)

    def join(self, code, identity: str, name, team) -> dict:
        code = normalize_room_code(code)
        team = parse_enum(Team, team, 'team')
        name = clean_name(name)

        with self._directory_lock:
            snapshot = None
            while snapshot is None:
                room = self.rooms.get(code)
                if room is None:
                    room = self._new_room(code)
                    with room.lock:
                        room.join(identity, name, team)
                        self._register(room)
                        snapshot = room.to_dict()
                    continue

                with room.lock:
                    # The room may have been discarded between lookup and lock
                    if self.rooms.get(code) is not room:
                        continue
                    room.join(identity, name, team)
                    snapshot = room.to_dict()

        self.sessions.bind(identity, code)
        logger.info(f"{name} joined room {code} on {team.value}")
        self._broadcast(code, 'game_state', snapshot)
        return snapshot

    def create_ai_game(self, code, identity: str, name, team, mode=GameMode.VS_AI,
                       difficulty=None) -> dict:
        code = normalize_room_code(code)
        team = parse_enum(Team, team, 'team')
        mode = parse_enum(GameMode, mode, 'game mode')
        difficulty = parse_enum(Difficulty, difficulty or self.default_difficulty, 'difficulty')
        name = clean_name(name)

        with self._directory_lock:
            if self.rooms.get(code) is not None:
                raise RoomAlreadyExists()
            room = self._new_room(code, mode, difficulty)
            with room.lock:
                room.join(identity, name, team)
                if mode is GameMode.VS_AI:
                    self._seat_ai(room, team, difficulty)
                    self._seat_ai(room, team.opponent, difficulty)
                    self._seat_ai(room, team.opponent, difficulty)
                    room.last_action = f"{name} created AI Game"
                elif mode is GameMode.WITH_AI_PARTNER:
                    self._seat_ai(room, team, difficulty)
                    room.last_action = f"{name} created game with AI partner"
                self._register(room)
                snapshot = room.to_dict()

        self.sessions.bind(identity, code)
        self._broadcast(code, 'game_state', snapshot)
        return snapshot

    def _seat_ai(self, room: Room, team: Team, difficulty: Difficulty) -> Seat:
        taken = {seat.name for seat in room.seats}
        name = next((n for n in AI_NAMES if n not in taken), f"Bot {len(room.seats) + 1}")
        identity = f"ai-{uuid.uuid4()}"
        seat = room.join(identity, name, team, is_ai=True, difficulty=difficulty)
        self.ai_players[identity] = AIPlayer(name, difficulty, rng=random.Random(self.rng.getrandbits(64)))
        logger.info(f"AI {name} ({difficulty.value}) seated in room {room.code} on {team.value}")
        return seat

    def add_ai_seat(self, code, team=None, difficulty=None) -> dict:
        room = self.get_room(code)
        with room.lock:
            if room.phase is not Phase.WAITING:
                raise AlreadyStarted()
            difficulty = parse_enum(Difficulty, difficulty or room.ai_difficulty, 'difficulty')
            if team is None:
                team = self._team_needing_seat(room)
            else:
                team = parse_enum(Team, team, 'team')
            self._seat_ai(room, team, difficulty)
            snapshot = room.to_dict()
        self._broadcast(room.code, 'game_state', snapshot)
        return snapshot

    def auto_fill_with_ai(self, code, difficulty=None) -> dict:
        room = self.get_room(code)
        with room.lock:
            if room.phase is not Phase.WAITING:
                raise AlreadyStarted()
            if len(room.seats) >= SEAT_COUNT:
                raise RoomFull()
            difficulty = parse_enum(Difficulty, difficulty or room.ai_difficulty, 'difficulty')
            while len(room.seats) < SEAT_COUNT:
                self._seat_ai(room, self._team_needing_seat(room), difficulty)
            room.last_action = 'Empty seats filled with AI players'
            snapshot = room.to_dict()
        self._broadcast(room.code, 'game_state', snapshot)
        return snapshot

    def _team_needing_seat(self, room: Room) -> Team:
        if len(room.seats) >= SEAT_COUNT:
            raise RoomFull()
        open_teams = room.open_teams()
        if not open_teams:
            raise TeamFull()
        return min(open_teams, key=lambda team: len(room.team_seats(team)))

    # -- round intents ---------------------------------------------------

    def start(self, code) -> dict:
        room = self.get_room(code)
        with room.lock:
            room.start()
            snapshot = room.to_dict()
        self._broadcast(room.code, 'game_started', snapshot)
        self._broadcast(room.code, 'game_state', snapshot)
        self._drive_ai(room)
        return snapshot

    def play_tile(self, code, identity: str, tile_id, side) -> dict:
        room = self.get_room(code)
        with room.lock:
            room.play_tile(identity, tile_id, side)
            snapshot, finished = self._after_action(room)
        self._record_round(finished)
        self._publish(room, snapshot)
        self._drive_ai(room)
        return snapshot

    def pass_turn(self, code, identity: str) -> dict:
        room = self.get_room(code)
        with room.lock:
            room.pass_turn(identity)
            snapshot, finished = self._after_action(room)
        self._record_round(finished)
        self._publish(room, snapshot)
        self._drive_ai(room)
        return snapshot

    def _after_action(self, room: Room):
        """Runs under the room lock right after a successful play or pass.

        Returns the new snapshot and, when the round just ended, the
        ``(FinishedRound, ai_seats)`` pair to hand to the round recorder once
        the lock is released.
        """
        finished = None
        if room.phase is Phase.FINISHED:
            finished = self._on_round_finished(room)
        return room.to_dict(), finished

    def _count(self, counter: str):
        with self._counter_lock:
            setattr(self, counter, getattr(self, counter) + 1)

    def _on_round_finished(self, room: Room):
        outcome = room.last_outcome
        self._count('rounds_finished')
        for seat in room.ai_seats():
            ai = self._ai_for(seat)
            if outcome.winner == DRAW:
                result = RoundResult.DRAW
            elif outcome.winner is seat.team:
                result = RoundResult.WIN
            else:
                result = RoundResult.LOSS
            ai.learn(result, outcome.points)

        if self.round_recorder is None:
            return None
        ai_seats = [(seat, self.ai_players[seat.identity])
                    for seat in room.ai_seats() if seat.identity in self.ai_players]
        return room.finished_round(), ai_seats

    def _record_round(self, finished):
        if finished is None or self.round_recorder is None:
            return
        record, ai_seats = finished
        try:
            self.round_recorder(record, ai_seats)
        except Exception as e:
            logger.warning(f"Failed to record round for room {record.code}: {e}")

    # -- AI pipeline -----------------------------------------------------

    def _ai_for(self, seat: Seat) -> AIPlayer:
        ai = self.ai_players.get(seat.identity)
        if ai is None:
            ai = AIPlayer(seat.name, seat.difficulty or self.default_difficulty,
                          rng=random.Random(self.rng.getrandbits(64)))
            self.ai_players[seat.identity] = ai
        return ai

    def _ai_delay(self) -> float:
        low, high = self.ai_delay
        if high <= 0:
            return 0.0
        return self.rng.uniform(low, high)

    def _drive_ai(self, room: Room):
        """Schedule the next AI move if an AI seat is up and none is pending"""
        with room.lock:
            if room.phase is not Phase.PLAYING or room.ai_turn_pending:
                return
            if not room.current_seat.is_ai:
                return
            room.ai_turn_pending = True
            round_number = room.round_number
            seat_index = room.current_index

        self.scheduler.schedule(
            self._ai_delay(),
            lambda: self._run_ai_turn(room.code, round_number, seat_index),
        )

    def _run_ai_turn(self, code: str, round_number: int, seat_index: int):
        room = self.rooms.get(code)
        if room is None:
            logger.debug(f"Room {code} closed before its AI turn fired")
            return

        with room.lock:
            room.ai_turn_pending = False
            if (room.phase is not Phase.PLAYING or room.round_number != round_number
                    or room.current_index != seat_index):
                return
            seat = room.current_seat
            if not seat.is_ai:
                return

            ai = self._ai_for(seat)
            move = ai.choose_move(room.table_view(seat_index))
            try:
                if move is None:
                    room.pass_turn(seat.identity)
                else:
                    room.play_tile(seat.identity, move.tile_id, move.side)
            except GameError as e:
                logger.error(f"AI {seat.name} in room {code} made a rejected move: {e.message}")
                return
            self._count('ai_moves')
            snapshot, finished = self._after_action(room)

        self._record_round(finished)
        self._publish(room, snapshot)
        self._drive_ai(room)

    # -- connections -----------------------------------------------------

    def disconnect(self, identity: str) -> List[str]:
        affected = []
        for code in self.sessions.rooms_for(identity):
            with self._directory_lock:
                room = self.rooms.get(code)
                if room is None:
                    continue
                with room.lock:
                    seat = room.mark_disconnected(identity)
                    if seat is None:
                        continue
                    abandoned = room.phase is Phase.WAITING and not room.connected_humans()
                    snapshot = room.to_dict()
                    if abandoned:
                        self._discard_room(room)
            affected.append(code)
            if abandoned:
                logger.info(f"Room {code} abandoned while waiting, removed")
            else:
                self._broadcast(code, 'game_state', snapshot)
        self.sessions.unbind(identity)
        return affected

    def reconnect(self, code, old_identity: str, new_identity: str) -> dict:
        room = self.get_room(code)
        with room.lock:
            room.replace_identity(old_identity, new_identity)
            snapshot = room.to_dict()
        self.sessions.rebind(old_identity, new_identity, room.code)
        self._broadcast(room.code, 'game_state', snapshot)
        return snapshot

    def _discard_room(self, room: Room):
        """Caller holds the directory lock"""
        self.rooms.delete(room.code)
        self.sessions.forget_room(room.code)
        for seat in room.ai_seats():
            self.ai_players.pop(seat.identity, None)

    def shutdown(self):
        """Drop every room, session and AI player held by this service"""
        with self._directory_lock:
            for room in list(self.rooms):
                self._discard_room(room)
        self.sessions.clear()
        self.ai_players.clear()

    # -- broadcasting ----------------------------------------------------

    def _broadcast(self, code: str, event: str, payload: dict):
        if self.broadcaster is None:
            return
        try:
            self.broadcaster(code, event, payload)
        except Exception as e:
            logger.error(f"Broadcast of {event} to room {code} failed: {e}")

    def _publish(self, room: Room, snapshot: dict):
        self._broadcast(room.code, 'game_state', snapshot)
        if snapshot['phase'] == Phase.FINISHED.value:
            self._broadcast(room.code, 'game_over', {
                'winner': snapshot['winner'],
                'scores': snapshot['scores'],
                'points': snapshot['last_round_points'],
                'reason': snapshot['last_round_reason'],
            })
