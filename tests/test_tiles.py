import random
import unittest

from domino_server.tiles import Tile, generate_full_set, hand_score, shuffle


class TestTile(unittest.TestCase):
    def test_tile_creation(self):
        """Test tile creation and basic properties"""
        tile = Tile(1, 2)
        self.assertEqual(tile.left, 1)
        self.assertEqual(tile.right, 2)
        self.assertEqual(tile.id, 'domino-1-2')
        self.assertEqual(tile.pips, 3)

    def test_out_of_range_values_rejected(self):
        with self.assertRaises(ValueError):
            Tile(7, 1)
        with self.assertRaises(ValueError):
            Tile(-1, 3)

    def test_equality_follows_id(self):
        """Flipping keeps identity, same pips under another id do not"""
        tile = Tile(2, 5, 'domino-9')
        self.assertEqual(tile, tile.flipped())
        self.assertNotEqual(tile, Tile(2, 5, 'domino-10'))
        self.assertEqual(len({tile, tile.flipped()}), 1)

    def test_key_is_orientation_free(self):
        self.assertEqual(Tile(5, 2).key, (2, 5))
        self.assertEqual(Tile(2, 5).key, (2, 5))

    def test_is_double(self):
        """Test double tile detection"""
        self.assertTrue(Tile(3, 3).is_double())
        self.assertFalse(Tile(1, 2).is_double())

    def test_has_value(self):
        """Test value checking"""
        tile = Tile(1, 4)

        self.assertTrue(tile.has_value(1))
        self.assertTrue(tile.has_value(4))
        self.assertFalse(tile.has_value(2))
        self.assertFalse(tile.has_value(None))

    def test_get_other_value(self):
        """Test getting the other value"""
        tile = Tile(2, 5)

        self.assertEqual(tile.get_other_value(2), 5)
        self.assertEqual(tile.get_other_value(5), 2)
        self.assertIsNone(tile.get_other_value(3))

    def test_flipped(self):
        tile = Tile(2, 6)
        flipped = tile.flipped()
        self.assertEqual((flipped.left, flipped.right), (6, 2))
        self.assertEqual(flipped.id, tile.id)

    def test_to_dict(self):
        """Test dictionary conversion"""
        tile = Tile(3, 6)
        self.assertEqual(tile.to_dict(), {'id': 'domino-3-6', 'left': 3, 'right': 6})


class TestDeck(unittest.TestCase):
    def test_full_set_has_every_pair_once(self):
        tiles = generate_full_set()
        self.assertEqual(len(tiles), 28)
        self.assertEqual(len({tile.key for tile in tiles}), 28)
        self.assertEqual(len({tile.id for tile in tiles}), 28)
        self.assertEqual(sum(1 for tile in tiles if tile.is_double()), 7)
        self.assertEqual(tiles[0].id, 'domino-0')
        self.assertEqual(tiles[-1].key, (6, 6))

    def test_shuffle_returns_new_list(self):
        tiles = generate_full_set()
        original = list(tiles)
        shuffled = shuffle(tiles, random.Random(3))

        self.assertEqual(tiles, original)
        self.assertCountEqual(shuffled, original)

    def test_shuffle_is_reproducible_with_seed(self):
        tiles = generate_full_set()
        self.assertEqual(shuffle(tiles, random.Random(11)), shuffle(tiles, random.Random(11)))

    def test_hand_score(self):
        self.assertEqual(hand_score([Tile(6, 6), Tile(0, 1), Tile(2, 3)]), 18)
        self.assertEqual(hand_score([]), 0)


if __name__ == '__main__':
    unittest.main()
