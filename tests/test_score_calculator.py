"""Achievement scoring and month rollup helpers."""

from types import SimpleNamespace

import pytest

from pms.services import score_calculator


def _act(weight):
    return SimpleNamespace(weight=weight)


def _ach(value, status="COUNT"):
    return SimpleNamespace(value=value, status=status)


class TestScore:
    def test_value_times_weight(self):
        assert score_calculator.score(80, 0.25) == pytest.approx(20.0)

    def test_null_value_scores_zero(self):
        assert score_calculator.score(None, 0.5) == 0

    def test_format_rounds_for_display_only(self):
        assert score_calculator.format_score(1 / 3) == "0.33"
        assert score_calculator.format_score(None) == "0.00"


class TestRollups:
    def test_only_count_pairs_contribute(self):
        pairs = [
            (_act(0.2), _ach(10)),
            (_act(0.3), _ach(50, status="NOT_COUNT")),
            (_act(0.5), None),
        ]
        assert score_calculator.counted_weight(pairs) == pytest.approx(0.2)
        assert score_calculator.achieved_weight(pairs) == pytest.approx(2.0)

    def test_counted_with_null_value(self):
        pairs = [(_act(0.4), _ach(None))]
        assert score_calculator.counted_weight(pairs) == pytest.approx(0.4)
        assert score_calculator.achieved_weight(pairs) == 0

    def test_is_counted(self):
        assert score_calculator.is_counted(None) is False
        assert score_calculator.is_counted(_ach(1, "NOT_COUNT")) is False
        assert score_calculator.is_counted(_ach(1)) is True
