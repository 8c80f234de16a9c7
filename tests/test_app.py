import unittest
import json

from domino_server.main import create_app
from domino_server.monitoring import monitor


def events(received, name):
    return [message['args'][0] for message in received if message['name'] == name]


class TestDominoesApp(unittest.TestCase):
    def setUp(self):
        """Set up test client"""
        monitor.reset()
        self.app = create_app('testing')
        self.client = self.app.test_client()
        self.app_context = self.app.app_context()
        self.app_context.push()

    def tearDown(self):
        """Clean up after tests"""
        self.app.game_service.shutdown()
        self.app_context.pop()

    def test_health_endpoint(self):
        """Test health check endpoint"""
        response = self.client.get('/health')
        self.assertEqual(response.status_code, 200)

        data = json.loads(response.data)
        self.assertEqual(data['status'], 'healthy')
        self.assertIn('timestamp', data)
        self.assertEqual(data['active_rooms'], 0)
        self.assertEqual(data['database']['message'], 'Database not configured')

    def test_metrics_endpoint(self):
        """Test metrics endpoint"""
        response = self.client.get('/metrics')
        self.assertEqual(response.status_code, 200)

        data = json.loads(response.data)
        self.assertIn('game', data)
        self.assertEqual(data['game']['rounds_finished'], 0)
        self.assertIn('memory_usage_percent', data['game'])
        self.assertEqual(data['system']['config_name'], 'testing')
        self.assertEqual(data['system']['ai_turn_scheduler'], 'immediate')
        self.assertIn('intents', data['application'])

    def test_room_listing(self):
        self.app.game_service.create_ai_game('abc', 'sid-1', 'Ann', 'team1')

        data = json.loads(self.client.get('/api/rooms').data)
        self.assertEqual(data['count'], 1)
        self.assertEqual(data['rooms'][0]['room_code'], 'ABC')

        response = self.client.get('/api/rooms/abc')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.data)['game_mode'], 'vs-ai')

        data = json.loads(self.client.get('/api/rooms/ABC/ai').data)
        self.assertEqual(len(data['ai_players']), 3)

    def test_unknown_room_is_404(self):
        response = self.client.get('/api/rooms/NOPE')
        self.assertEqual(response.status_code, 404)

        data = json.loads(response.data)
        self.assertEqual(data['error'], 'room_not_found')
        self.assertEqual(data['message'], 'Game not found!')

    def test_unknown_route_is_404(self):
        response = self.client.get('/does-not-exist')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(json.loads(response.data)['error'], 'Not Found')

    def test_request_log_names_the_room(self):
        with self.assertLogs('dominoes.requests', level='INFO') as logs:
            response = self.client.get('/api/rooms/abc', headers={'X-Request-ID': 'req-42'})

        self.assertEqual(response.headers['X-Request-ID'], 'req-42')
        lines = [line for line in logs.output if 'req-42 GET /api/rooms/abc -> 404' in line]
        self.assertEqual(len(lines), 1)
        self.assertIn('room=ABC', lines[0])

    def test_history_without_database(self):
        data = json.loads(self.client.get('/api/history?room=abc').data)
        self.assertEqual(data['rounds'], [])
        self.assertFalse(data['database_enabled'])

        data = json.loads(self.client.get('/api/ai-performance').data)
        self.assertEqual(data['ai_performance'], [])


class TestSocketEvents(unittest.TestCase):
    def setUp(self):
        monitor.reset()
        self.app = create_app('testing')
        self.socketio = self.app.socketio
        self.client = self.socketio.test_client(self.app)

    def tearDown(self):
        if self.client.is_connected():
            self.client.disconnect()
        self.app.game_service.shutdown()

    def test_join_game_replies_with_state(self):
        self.client.emit('join_game', {'room_code': 'abc', 'player_name': 'Ann', 'team': 'team1'})

        states = events(self.client.get_received(), 'game_state')
        self.assertEqual(len(states), 1)
        self.assertEqual(states[0]['room_code'], 'ABC')
        self.assertEqual(states[0]['players'][0]['name'], 'Ann')

    def test_room_members_see_each_others_moves(self):
        other = self.socketio.test_client(self.app)
        self.client.emit('join_game', {'room_code': 'ABC', 'player_name': 'Ann', 'team': 'team1'})
        self.client.get_received()

        other.emit('join_game', {'room_code': 'ABC', 'player_name': 'Bob', 'team': 'team2'})

        states = events(self.client.get_received(), 'game_state')
        self.assertEqual(len(states[-1]['players']), 2)
        other.disconnect()

    def test_rejected_intent_goes_to_sender_only(self):
        self.client.emit('join_game', {'room_code': 'ABC', 'player_name': 'Ann', 'team': 'team1'})
        self.client.get_received()

        self.client.emit('start_game', 'ABC')

        received = self.client.get_received()
        errors = events(received, 'error')
        self.assertEqual(errors, [{'error': 'wrong_player_count', 'message': 'Need 4 players to start!'}])
        self.assertEqual(events(received, 'game_state'), [])

        metrics = monitor.get_metrics()['intents']
        self.assertEqual(metrics['rejections_by_code'], {'wrong_player_count': 1})

    def test_play_in_unknown_room(self):
        self.client.emit('play_domino', {'room_code': 'NOPE', 'tile_id': 'domino-0', 'side': 'left'})
        errors = events(self.client.get_received(), 'error')
        self.assertEqual(errors[0]['error'], 'room_not_found')

    def test_malformed_payload(self):
        self.client.emit('join_game', ['not', 'an', 'object'])
        errors = events(self.client.get_received(), 'error')
        self.assertEqual(errors[0]['error'], 'invalid_request')

    def test_ai_game_starts_and_broadcasts(self):
        self.client.emit('create_ai_game', {'room_code': 'AI1', 'player_name': 'Ann',
                                            'team': 'team1', 'ai_difficulty': 'easy'})
        state = events(self.client.get_received(), 'game_state')[-1]
        self.assertEqual(len(state['players']), 4)

        self.client.emit('start_game', {'room_code': 'AI1'})
        received = self.client.get_received()

        self.assertEqual(len(events(received, 'game_started')), 1)
        latest = events(received, 'game_state')[-1]
        self.assertEqual(latest['phase'], 'playing')
        # AI seats have already moved; it is the human's turn now
        self.assertEqual(latest['current_player_index'], 0)

    def test_pass_with_bare_room_code(self):
        self.client.emit('join_game', {'room_code': 'ABC', 'player_name': 'Ann', 'team': 'team1'})
        self.client.get_received()

        self.client.emit('pass', 'ABC')
        errors = events(self.client.get_received(), 'error')
        self.assertEqual(errors[0]['error'], 'not_your_turn')

    def test_auto_fill_and_add_ai(self):
        self.client.emit('join_game', {'room_code': 'ABC', 'player_name': 'Ann', 'team': 'team1'})
        self.client.emit('add_ai_player', {'room_code': 'ABC', 'team': 'team2', 'difficulty': 'hard'})
        self.client.emit('auto_fill_ai', {'room_code': 'ABC'})

        state = events(self.client.get_received(), 'game_state')[-1]
        self.assertEqual(len(state['players']), 4)
        self.assertEqual(state['players'][1]['ai_difficulty'], 'hard')

    def test_disconnect_and_rejoin(self):
        self.client.emit('create_ai_game', {'room_code': 'AI2', 'player_name': 'Ann', 'team': 'team1'})
        self.client.emit('start_game', 'AI2')
        old_id = events(self.client.get_received(), 'game_state')[-1]['players'][0]['id']
        self.client.disconnect()

        room = self.app.game_service.get_room('AI2')
        self.assertFalse(room.seats[0].is_connected)

        again = self.socketio.test_client(self.app)
        again.emit('rejoin_game', {'room_code': 'AI2', 'player_id': old_id})
        state = events(again.get_received(), 'game_state')[-1]

        self.assertNotEqual(state['players'][0]['id'], old_id)
        self.assertTrue(state['players'][0]['is_connected'])
        again.disconnect()


if __name__ == '__main__':
    unittest.main()
