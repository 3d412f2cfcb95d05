"""Tests for round/attempt derivation."""

from datetime import timedelta

from django.test import SimpleTestCase

from fiscal.services.retry_policy import RetryPolicy


class RoundDerivationTests(SimpleTestCase):
    def setUp(self):
        self.policy = RetryPolicy()

    def test_round_and_attempt_table(self):
        table = {
            0: (1, 3),
            1: (1, 1),
            3: (1, 3),
            4: (2, 1),
            7: (3, 1),
            10: (4, 1),
            12: (4, 3),
        }
        for count, (round_number, attempt) in table.items():
            self.assertEqual(self.policy.round_for(count), round_number, count)
            self.assertEqual(self.policy.attempt_in_round(count), attempt, count)

    def test_round_exhausted(self):
        self.assertFalse(self.policy.round_exhausted(0))
        self.assertFalse(self.policy.round_exhausted(2))
        self.assertTrue(self.policy.round_exhausted(3))
        self.assertTrue(self.policy.round_exhausted(12))

    def test_next_round_delays(self):
        self.assertEqual(self.policy.next_round_delay(3), timedelta(minutes=5))
        self.assertEqual(self.policy.next_round_delay(6), timedelta(minutes=15))
        self.assertEqual(self.policy.next_round_delay(9), timedelta(minutes=30))
        self.assertIsNone(self.policy.next_round_delay(12))

    def test_describe(self):
        info = self.policy.describe(7)
        self.assertEqual(info["current_round"], 3)
        self.assertEqual(info["attempt_in_round"], 1)
        self.assertEqual(info["remaining_attempts"], 5)

    def test_from_settings(self):
        with self.settings(FISCAL_ROUND_DELAYS_MINUTES={1: 0, 2: 1}, FISCAL_MAX_ATTEMPTS=6):
            policy = RetryPolicy.from_settings()
        self.assertEqual(policy.max_attempts, 6)
        self.assertEqual(policy.next_round_delay(3), timedelta(minutes=1))
        self.assertIsNone(policy.next_round_delay(6))
