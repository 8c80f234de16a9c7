import random
import unittest

from domino_server.errors import (
    AlreadyStarted, HasLegalMove, IllegalMove, IllegalSide, InvalidRequest, NotInGame,
    NotYourTurn, TeamFull, TileNotInHand, WrongPlayerCount,
)
from domino_server.game_types import DRAW, Phase, Team
from domino_server.room import REASON_BLOCKED, REASON_DOMINO, Room
from domino_server.rules import has_legal_move, legal_moves
from domino_server.tiles import Tile

from decks import arrange, build_deck, seated_room


class TestSeating(unittest.TestCase):
    def setUp(self):
        self.room = Room('ABCD', rng=random.Random(5))

    def test_seats_interleave_teams_in_join_order(self):
        """Joining in any order yields T1, T2, T1, T2"""
        self.room.join('b1', 'Bea', Team.TEAM2)
        self.room.join('b2', 'Bo', Team.TEAM2)
        self.room.join('a1', 'Al', Team.TEAM1)
        self.room.join('a2', 'Ava', Team.TEAM1)

        self.assertEqual([seat.identity for seat in self.room.seats], ['a1', 'b1', 'a2', 'b2'])
        self.assertEqual([seat.team for seat in self.room.seats],
                         [Team.TEAM1, Team.TEAM2, Team.TEAM1, Team.TEAM2])

    def test_partial_room_keeps_team_order(self):
        self.room.join('b1', 'Bea', Team.TEAM2)
        self.room.join('a1', 'Al', Team.TEAM1)
        self.room.join('b2', 'Bo', Team.TEAM2)
        self.assertEqual([seat.identity for seat in self.room.seats], ['a1', 'b1', 'b2'])
        self.assertEqual(self.room.open_teams(), [Team.TEAM1])

    def test_team_full(self):
        self.room.join('a1', 'Al', Team.TEAM1)
        self.room.join('a2', 'Ava', Team.TEAM1)
        with self.assertRaises(TeamFull):
            self.room.join('a3', 'Ari', Team.TEAM1)
        self.assertEqual(len(self.room.seats), 2)

    def test_fifth_player_rejected(self):
        room = seated_room()
        with self.assertRaises(TeamFull):
            room.join('p5', 'Eve', Team.TEAM2)

    def test_join_after_start_rejected(self):
        self.room.join('a1', 'Al', Team.TEAM1)
        self.room.phase = Phase.PLAYING
        with self.assertRaises(AlreadyStarted):
            self.room.join('b1', 'Bea', Team.TEAM2)

    def test_duplicate_identity_rejected(self):
        self.room.join('a1', 'Al', Team.TEAM1)
        with self.assertRaises(InvalidRequest):
            self.room.join('a1', 'Al', Team.TEAM2)

    def test_reconnect_swaps_identity_only(self):
        room = seated_room()
        room.start(build_deck())
        hand = list(room.seats[1].hand)

        room.mark_disconnected('p2')
        self.assertFalse(room.seats[1].is_connected)
        room.replace_identity('p2', 'p2-new')

        self.assertEqual(room.seats[1].identity, 'p2-new')
        self.assertTrue(room.seats[1].is_connected)
        self.assertEqual(room.seats[1].hand, hand)

    def test_reconnect_rejects_unknown_or_taken_identity(self):
        room = seated_room()
        with self.assertRaises(NotInGame):
            room.replace_identity('ghost', 'p9')
        with self.assertRaises(InvalidRequest):
            room.replace_identity('p2', 'p3')


class TestStart(unittest.TestCase):
    def test_needs_four_players(self):
        room = Room('ABCD')
        room.join('a1', 'Al', Team.TEAM1)
        with self.assertRaises(WrongPlayerCount):
            room.start()

    def test_cannot_start_twice(self):
        room = seated_room()
        room.start()
        with self.assertRaises(AlreadyStarted):
            room.start()

    def test_deal_gives_seven_tiles_each_from_one_deck(self):
        room = seated_room()
        room.start()

        self.assertEqual(room.phase, Phase.PLAYING)
        self.assertEqual(room.round_number, 1)
        for seat in room.seats:
            self.assertEqual(len(seat.hand), 7)
        keys = {tile.key for seat in room.seats for tile in seat.hand}
        self.assertEqual(len(keys), 28)

    def test_rejects_short_deck(self):
        room = seated_room()
        with self.assertRaises(ValueError):
            room.start(build_deck()[:20])

    def test_highest_double_opens(self):
        room = seated_room()
        room.start(build_deck([], [], [(6, 6)]))
        self.assertEqual(room.current_index, 2)
        self.assertIn("Cid's turn", room.last_action)

    def test_lone_double_opens_without_history(self):
        room = seated_room()
        hands = [[(0, 1), (2, 3)], [(1, 5), (2, 6)], [(3, 5), (0, 6)], [(4, 4), (1, 2)]]
        for seat, hand in zip(room.seats, hands):
            seat.hand = [Tile(a, b) for a, b in hand]
        self.assertEqual(room._opening_seat_index(None), 3)

    def test_no_double_falls_back_to_first_seat(self):
        room = seated_room()
        for seat in room.seats:
            seat.hand = [Tile(0, 1)]
        self.assertEqual(room._opening_seat_index(None), 0)

    def test_rematch_keeps_scores_and_previous_winner_opens(self):
        room = seated_room()
        room.start(build_deck())
        room.phase = Phase.FINISHED
        room.winner = Team.TEAM2
        room.scores[Team.TEAM2] = 27
        room.board = [Tile(1, 1)]
        room.pass_count = 3

        room.start(build_deck([], [], [(6, 6)]))

        self.assertEqual(room.current_index, 1)
        self.assertEqual(room.scores, {Team.TEAM1: 0, Team.TEAM2: 27})
        self.assertEqual(room.board, [])
        self.assertIsNone(room.left_end)
        self.assertEqual(room.pass_count, 0)
        self.assertIsNone(room.winner)
        self.assertEqual(room.round_number, 2)

    def test_rematch_after_draw_uses_doubles(self):
        room = seated_room()
        room.start(build_deck())
        room.phase = Phase.FINISHED
        room.winner = DRAW

        room.start(build_deck([], [], [(6, 6)]))
        self.assertEqual(room.current_index, 2)


class TestPlay(unittest.TestCase):
    def setUp(self):
        self.room = seated_room()

    def test_double_on_empty_board(self):
        arrange(self.room, [[(3, 3), (0, 1)], [(1, 2)], [(1, 3)], [(1, 4)]])
        tile = self.room.play_tile('p1', 'domino-3-3', 'left')

        self.assertEqual((self.room.left_end, self.room.right_end), (3, 3))
        self.assertEqual(self.room.board, [tile])
        self.assertIsNone(self.room.moves[-1]['side'])

    def test_right_play_flips_tile(self):
        arrange(self.room, [[(6, 5), (0, 0)], [(1, 2)], [(1, 3)], [(1, 4)]], board=[(2, 5)])
        self.room.pass_count = 2

        placed = self.room.play_tile('p1', 'domino-6-5', 'right')

        self.assertEqual((placed.left, placed.right), (5, 6))
        self.assertEqual((self.room.left_end, self.room.right_end), (2, 6))
        self.assertEqual(self.room.board[-1], placed)
        self.assertEqual(self.room.pass_count, 0)
        self.assertEqual(self.room.current_index, 1)
        self.assertEqual(self.room.last_action, "Ann played [6|5] - Bob's turn")

    def test_left_play_goes_to_front(self):
        arrange(self.room, [[(4, 2), (0, 0)], [(1, 2)], [(1, 3)], [(1, 4)]], board=[(2, 5)])

        placed = self.room.play_tile('p1', 'domino-4-2', 'left')

        self.assertEqual(self.room.board[0], placed)
        self.assertEqual(placed.right, 2)
        self.assertEqual(self.room.left_end, 4)
        self.assertEqual(self.room.right_end, 5)

    def test_rejections_leave_state_untouched(self):
        arrange(self.room, [[(0, 1), (6, 5)], [(1, 2)], [(1, 3)], [(1, 4)]], board=[(2, 5)])
        before = self.room.to_dict()

        cases = [
            (NotInGame, 'ghost', 'domino-6-5', 'right'),
            (NotYourTurn, 'p2', 'domino-1-2', 'left'),
            (TileNotInHand, 'p1', 'domino-4-4', 'right'),
            (IllegalMove, 'p1', 'domino-0-1', 'left'),
            (IllegalSide, 'p1', 'domino-6-5', 'left'),
            (IllegalSide, 'p1', 'domino-6-5', 'middle'),
        ]
        for error, identity, tile_id, side in cases:
            with self.assertRaises(error):
                self.room.play_tile(identity, tile_id, side)

        self.assertEqual(self.room.to_dict(), before)

    def test_pass_requires_being_blocked(self):
        arrange(self.room, [[(0, 1), (6, 5)], [(1, 2)], [(1, 3)], [(1, 4)]], board=[(2, 5)])
        with self.assertRaises(HasLegalMove):
            self.room.pass_turn('p1')
        with self.assertRaises(NotYourTurn):
            self.room.pass_turn('p3')
        self.assertEqual(self.room.pass_count, 0)

    def test_pass_advances_turn(self):
        arrange(self.room, [[(0, 1)], [(1, 2)], [(1, 3)], [(1, 4)]], board=[(6, 6)])
        self.room.pass_turn('p1')
        self.assertEqual(self.room.pass_count, 1)
        self.assertEqual(self.room.current_index, 1)
        self.assertEqual(self.room.moves[-1], {'seat': 0, 'player': 'Ann', 'action': 'pass'})


class TestRoundEnd(unittest.TestCase):
    def setUp(self):
        self.room = seated_room()

    def test_emptied_hand_scores_opponent_hands(self):
        arrange(self.room, [[(3, 4)], [(6, 6)], [(1, 1)], [(2, 3)]], board=[(4, 4)])

        self.room.play_tile('p1', 'domino-3-4', 'left')

        self.assertEqual(self.room.phase, Phase.FINISHED)
        self.assertIs(self.room.winner, Team.TEAM1)
        self.assertEqual(self.room.last_outcome.points, 17)
        self.assertEqual(self.room.last_outcome.reason, REASON_DOMINO)
        self.assertEqual(self.room.scores, {Team.TEAM1: 17, Team.TEAM2: 0})
        self.assertEqual(self.room.last_action, 'Ann wins! Team 1 wins the round!')
        self.assertEqual(self.room.current_index, 0)

    def test_blocked_single_lowest_hand(self):
        """Totals [10, 10, 3, 7]: seat 2 alone is lowest, team 1 takes 27"""
        arrange(self.room, [[(4, 6)], [(5, 5)], [(1, 2)], [(3, 4)]], board=[(0, 0)])

        for identity in ('p1', 'p2', 'p3', 'p4'):
            self.room.pass_turn(identity)

        self.assertEqual(self.room.phase, Phase.FINISHED)
        self.assertIs(self.room.winner, Team.TEAM1)
        self.assertEqual(self.room.last_outcome.reason, REASON_BLOCKED)
        self.assertEqual(self.room.scores, {Team.TEAM1: 27, Team.TEAM2: 0})
        self.assertEqual(self.room.last_action, 'Game blocked! Team 1 wins!')

    def test_blocked_lowest_hands_on_both_teams_is_draw(self):
        arrange(self.room, [[(2, 3)], [(1, 4)], [(4, 4)], [(4, 5)]], board=[(0, 0)])

        for identity in ('p1', 'p2', 'p3', 'p4'):
            self.room.pass_turn(identity)

        self.assertEqual(self.room.winner, DRAW)
        self.assertEqual(self.room.last_outcome.points, 0)
        self.assertEqual(self.room.scores, {Team.TEAM1: 0, Team.TEAM2: 0})
        self.assertEqual(self.room.to_dict()['winner'], 'draw')

    def test_blocked_tie_within_one_team(self):
        arrange(self.room, [[(1, 2)], [(4, 5)], [(3, 0)], [(3, 5), (1, 0)]], board=[(6, 6)])

        for identity in ('p1', 'p2', 'p3', 'p4'):
            self.room.pass_turn(identity)

        self.assertIs(self.room.winner, Team.TEAM1)
        self.assertEqual(self.room.scores[Team.TEAM1], 18)

    def test_no_moves_after_round_end(self):
        arrange(self.room, [[(3, 4)], [(6, 6)], [(1, 1)], [(2, 3)]], board=[(4, 4)])
        self.room.play_tile('p1', 'domino-3-4', 'left')

        with self.assertRaises(NotYourTurn):
            self.room.pass_turn('p2')
        with self.assertRaises(NotYourTurn):
            self.room.play_tile('p2', 'domino-6-6', 'right')


class TestFullRound(unittest.TestCase):
    def test_rotation_and_deck_conservation(self):
        """Play a whole round taking the first legal move each turn"""
        room = seated_room(seed=42)
        room.start()
        first = room.current_index
        steps = 0

        while room.phase is Phase.PLAYING:
            self.assertEqual(room.current_index, (first + steps) % 4)
            on_table = [tile.key for seat in room.seats for tile in seat.hand]
            on_table += [tile.key for tile in room.board]
            self.assertEqual(len(on_table), 28)
            self.assertEqual(len(set(on_table)), 28)

            seat = room.current_seat
            moves = legal_moves(seat.hand, room.left_end, room.right_end, room.board_empty)
            if moves:
                tile, side = moves[0]
                room.play_tile(seat.identity, tile.id, side)
            else:
                self.assertFalse(has_legal_move(seat.hand, room.left_end, room.right_end, False))
                room.pass_turn(seat.identity)
            steps += 1

        self.assertEqual(room.phase, Phase.FINISHED)
        self.assertIsNotNone(room.last_outcome)
        total = sum(room.scores.values())
        self.assertEqual(total, room.last_outcome.points)

    def test_board_is_a_connected_chain(self):
        room = seated_room(seed=7)
        room.start()
        while room.phase is Phase.PLAYING:
            seat = room.current_seat
            moves = legal_moves(seat.hand, room.left_end, room.right_end, room.board_empty)
            if moves:
                tile, side = moves[-1]
                room.play_tile(seat.identity, tile.id, side)
            else:
                room.pass_turn(seat.identity)

        for previous, current in zip(room.board, room.board[1:]):
            self.assertEqual(previous.right, current.left)
        self.assertEqual(room.board[0].left, room.left_end)
        self.assertEqual(room.board[-1].right, room.right_end)


class TestViews(unittest.TestCase):
    def test_table_view_sees_partner(self):
        room = seated_room()
        room.start(build_deck())
        view = room.table_view(1)

        self.assertEqual(view.team, Team.TEAM2)
        self.assertEqual(view.partner_index, 3)
        self.assertEqual(view.partner_hand, tuple(room.seats[3].hand))
        self.assertEqual(view.opponent_indices(), [0, 2])
        self.assertEqual(view.next_index, 2)
        self.assertEqual(view.hand_counts, (7, 7, 7, 7))
        self.assertTrue(view.board_empty)

    def test_snapshot(self):
        room = seated_room()
        data = room.to_dict()
        self.assertEqual(data['room_code'], 'TEST')
        self.assertEqual(data['phase'], 'waiting')
        self.assertIsNone(data['current_player_id'])
        self.assertEqual(data['board_ends'], {'left': None, 'right': None})
        self.assertEqual(data['scores'], {'team1': 0, 'team2': 0})

        room.start(build_deck([], [], [(6, 6)]))
        data = room.to_dict()
        self.assertEqual(data['current_player_id'], 'p3')
        self.assertEqual(len(data['players'][0]['hand']), 7)
        self.assertEqual(data['players'][0]['tile_count'], 7)
        self.assertFalse(data['players'][0]['is_ai'])


if __name__ == '__main__':
    unittest.main()
