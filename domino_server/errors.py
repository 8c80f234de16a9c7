"""
Rejected-intent errors. Raising one never mutates room state; the transport
layer turns it into an ``error`` reply for the caller only.
"""


class GameError(Exception):
    code = 'game_error'
    status_code = 400
    default_message = 'Request rejected'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.code, 'message': self.message}


class InvalidRequest(GameError):
    code = 'invalid_request'
    default_message = 'Malformed request'


class RoomNotFound(GameError):
    code = 'room_not_found'
    status_code = 404
    default_message = 'Game not found!'


class RoomAlreadyExists(GameError):
    code = 'room_already_exists'
    status_code = 409
    default_message = 'Game room already exists! Try a different code.'


class RoomFull(GameError):
    code = 'room_full'
    status_code = 409
    default_message = 'Game is full!'


class TeamFull(GameError):
    code = 'team_full'
    status_code = 409
    default_message = 'Team is full!'


class AlreadyStarted(GameError):
    code = 'already_started'
    status_code = 409
    default_message = 'Game already started!'


class WrongPlayerCount(GameError):
    code = 'wrong_player_count'
    status_code = 409
    default_message = 'Need 4 players to start!'


class NotInGame(GameError):
    code = 'not_in_game'
    status_code = 403
    default_message = 'You are not in this game!'


class NotYourTurn(GameError):
    code = 'not_your_turn'
    status_code = 409
    default_message = "It's not your turn!"


class TileNotInHand(GameError):
    code = 'tile_not_in_hand'
    default_message = 'Domino not in your hand!'


class IllegalMove(GameError):
    code = 'illegal_move'
    default_message = 'Cannot play this domino!'


class IllegalSide(GameError):
    code = 'illegal_side'
    default_message = 'Cannot play on that side!'


class HasLegalMove(GameError):
    code = 'has_legal_move'
    default_message = 'You have a playable domino!'
