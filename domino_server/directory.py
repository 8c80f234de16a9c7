"""
Room directory and session registry.

Both are plain objects owned by a ``GameService`` instance, so every app (and
every test) gets its own isolated set of rooms.
"""

import threading
from typing import Dict, Iterator, List, Optional

from domino_server.errors import InvalidRequest
from domino_server.room import Room


def normalize_room_code(code) -> str:
    if not isinstance(code, str) or not code.strip():
        raise InvalidRequest('A room code is required')
    return code.strip().upper()


class RoomRepository:
    """Storage interface for rooms keyed by code"""

    def get(self, code: str) -> Optional[Room]:
        raise NotImplementedError

    def set(self, room: Room) -> None:
        raise NotImplementedError

    def delete(self, code: str) -> Optional[Room]:
        raise NotImplementedError

    def codes(self) -> List[str]:
        raise NotImplementedError

    def __len__(self):
        return len(self.codes())

    def __iter__(self) -> Iterator[Room]:
        for code in self.codes():
            room = self.get(code)
            if room is not None:
                yield room


class InMemoryRoomRepository(RoomRepository):
    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def get(self, code):
        with self._lock:
            return self._rooms.get(code)

    def set(self, room):
        with self._lock:
            self._rooms[room.code] = room

    def delete(self, code):
        with self._lock:
            return self._rooms.pop(code, None)

    def codes(self):
        with self._lock:
            return list(self._rooms.keys())

    def clear(self):
        with self._lock:
            self._rooms.clear()


class SessionRegistry:
    """Maps a connection identity to the rooms it sits in"""

    def __init__(self):
        self._rooms_by_identity: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def bind(self, identity: str, code: str):
        with self._lock:
            codes = self._rooms_by_identity.setdefault(identity, [])
            if code not in codes:
                codes.append(code)

    def unbind(self, identity: str, code: Optional[str] = None):
        with self._lock:
            if code is None:
                self._rooms_by_identity.pop(identity, None)
                return
            codes = self._rooms_by_identity.get(identity, [])
            if code in codes:
                codes.remove(code)
            if not codes:
                self._rooms_by_identity.pop(identity, None)

    def rebind(self, old_identity: str, new_identity: str, code: str):
        self.unbind(old_identity, code)
        self.bind(new_identity, code)

    def rooms_for(self, identity: str) -> List[str]:
        with self._lock:
            return list(self._rooms_by_identity.get(identity, []))

    def forget_room(self, code: str):
        with self._lock:
            for identity in list(self._rooms_by_identity):
                codes = self._rooms_by_identity[identity]
                if code in codes:
                    codes.remove(code)
                if not codes:
                    del self._rooms_by_identity[identity]

    def clear(self):
        with self._lock:
            self._rooms_by_identity.clear()
