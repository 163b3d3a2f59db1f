import threading
import unittest

from core.contracts import Channel, DecodeMethod
from core.lookup import LookupEntry, LookupTable
from core.results import ResultRegistry


def _lookup():
    return LookupTable(
        {Channel.RED: {"ABC123": LookupEntry("Door A", "Door A unlocked")}}
    )


class TestResultRegistry(unittest.TestCase):
    def test_lookup_hit_copies_texts(self):
        reg = ResultRegistry(_lookup())
        res = reg.record(Channel.RED, "ABC123", DecodeMethod.SEGMENTED)
        self.assertEqual(res.display_text, "Door A")
        self.assertEqual(res.spoken_text, "Door A unlocked")
        self.assertEqual(res.method, DecodeMethod.SEGMENTED)

    def test_lookup_miss_synthesizes_unknown_texts(self):
        reg = ResultRegistry(_lookup())
        res = reg.record(Channel.GREEN, "zz9", DecodeMethod.CHANNEL_DOMINANCE)
        self.assertEqual(res.display_text, "Unknown GREEN QR: zz9")
        self.assertEqual(res.spoken_text, "Unknown green QR code detected")

    def test_payload_known_on_another_channel_is_unknown(self):
        reg = ResultRegistry(_lookup())
        res = reg.record(Channel.BLUE, "ABC123", DecodeMethod.SEGMENTED)
        self.assertEqual(res.display_text, "Unknown BLUE QR: ABC123")

    def test_first_decode_per_channel_wins(self):
        reg = ResultRegistry(_lookup())
        first = reg.record(Channel.RED, "ABC123", DecodeMethod.SEGMENTED)
        again = reg.record(Channel.RED, "OTHER", DecodeMethod.CHANNEL_DOMINANCE)
        self.assertIsNone(again)
        self.assertIs(reg.get(Channel.RED), first)
        self.assertEqual(len(reg), 1)

    def test_results_keep_discovery_order_and_cap_at_three(self):
        reg = ResultRegistry(LookupTable())
        for ch in (Channel.BLUE, Channel.RED, Channel.GREEN, Channel.RED, Channel.BLUE):
            reg.record(ch, ch.value, DecodeMethod.SEGMENTED)
        self.assertEqual(
            [r.channel for r in reg.results()],
            [Channel.BLUE, Channel.RED, Channel.GREEN],
        )
        self.assertTrue(reg.complete)
        self.assertEqual(reg.missing(), [])

    def test_missing_follows_channel_order(self):
        reg = ResultRegistry(LookupTable())
        reg.record(Channel.GREEN, "g", DecodeMethod.SEGMENTED)
        self.assertEqual(reg.missing(), [Channel.RED, Channel.BLUE])
        reg.clear()
        self.assertEqual(len(reg), 0)

    def test_concurrent_records_register_exactly_one(self):
        reg = ResultRegistry(LookupTable())
        created = []
        barrier = threading.Barrier(8)

        def _worker(i):
            barrier.wait()
            res = reg.record(Channel.RED, f"p{i}", DecodeMethod.SEGMENTED)
            if res is not None:
                created.append(res)

        threads = [threading.Thread(target=_worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(created), 1)
        self.assertEqual(len(reg), 1)

    def test_result_is_immutable(self):
        reg = ResultRegistry(LookupTable())
        res = reg.record(Channel.RED, "x", DecodeMethod.SEGMENTED)
        with self.assertRaises(AttributeError):
            res.raw_payload = "y"


if __name__ == "__main__":
    unittest.main()
