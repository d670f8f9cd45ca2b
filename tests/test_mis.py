"""Tests for MIS weights."""

import math
import random
from lumenforge.mis import balance_heuristic


class TestBalanceHeuristic:
    """Test the balance heuristic."""

    def test_weights_sum_to_one(self):
        rng = random.Random(42)
        for _ in range(1000):
            x = 10 ** rng.uniform(-8, 8)
            y = 10 ** rng.uniform(-8, 8)
            assert abs(balance_heuristic(x, y) + balance_heuristic(y, x) - 1.0) < 1e-12

    def test_matches_ratio_form(self):
        rng = random.Random(7)
        for _ in range(1000):
            x = rng.uniform(1e-3, 1e3)
            y = rng.uniform(1e-3, 1e3)
            assert abs(balance_heuristic(x, y) - x / (x + y)) < 1e-14

    def test_equal_pdfs(self):
        assert balance_heuristic(2.0, 2.0) == 0.5

    def test_zero_competitor(self):
        assert balance_heuristic(3.0, 0.0) == 1.0

    def test_infinite_competitor(self):
        assert balance_heuristic(3.0, math.inf) == 0.0

    def test_huge_values_do_not_overflow(self):
        w = balance_heuristic(1e308, 1e308)
        assert w == 0.5
