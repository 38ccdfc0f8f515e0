"""Performance tests and benchmarks for the formula engine.

These tests are marked as 'slow' and can be skipped with: pytest -m "not slow"
"""

import time

import pytest

from stemlab_pkg.evaluator import evaluate
from stemlab_pkg.parser import clear_parse_cache, parse_cache_info, parse_formula, tokenize
from stemlab_pkg.sampler import sample_curve
from stemlab_pkg.simulations import list_simulations, run_simulation


@pytest.mark.slow
class TestParsingPerformance:
    """Test parsing performance."""

    def test_tokenize_time(self):
        """Benchmark tokenizing a lab formula."""
        formula = "(v0^2 * sin(2*theta)) / g + 2*pi*sqrt(length/gravity)"
        start = time.time()
        for _ in range(1000):
            tokenize(formula)
        elapsed = time.time() - start
        assert elapsed < 2.0, f"Tokenizing too slow: {elapsed}s"

    def test_uncached_parsing_time(self):
        """Benchmark parsing distinct formulas."""
        start = time.time()
        for i in range(500):
            parse_formula(f"a*x^2 + {i}*x - cos(angle) / {i + 1}")
        elapsed = time.time() - start
        assert elapsed < 3.0, f"Parsing too slow: {elapsed}s"


@pytest.mark.slow
class TestEvaluationPerformance:
    """Test evaluation performance."""

    def test_cached_evaluation_time(self):
        """Repeated slider updates reuse one parsed tree."""
        clear_parse_cache()
        start = time.time()
        for i in range(5000):
            evaluate("voltage/resistance", {"voltage": i % 12, "resistance": 20})
        elapsed = time.time() - start
        assert parse_cache_info().misses == 1
        assert elapsed < 3.0, f"Cached evaluation too slow: {elapsed}s"

    def test_failures_are_fast(self):
        """Fallbacks must not be slower than successes."""
        start = time.time()
        for _ in range(2000):
            assert evaluate("mass*g", {"g": 9.8}) == 0
        elapsed = time.time() - start
        assert elapsed < 3.0, f"Failing evaluation too slow: {elapsed}s"

    def test_all_simulations(self):
        """Every built-in simulation runs quickly."""
        start = time.time()
        for _ in range(20):
            for name in list_simulations():
                run_simulation(name)
        elapsed = time.time() - start
        assert elapsed < 5.0, f"Simulations too slow: {elapsed}s"


@pytest.mark.slow
class TestSamplingPerformance:
    """Test curve sampling performance."""

    def test_default_curve_time(self):
        """Sampling a 101-point curve should be interactive."""
        start = time.time()
        for a in range(50):
            curve = sample_curve("y = a*x^2 + b*x + c", {"a": a / 10, "b": 1, "c": 0})
            assert curve.ok
        elapsed = time.time() - start
        assert elapsed < 5.0, f"Sampling too slow: {elapsed}s"

    def test_dense_curve_time(self):
        """Sampling a fine grid stays within bounds."""
        start = time.time()
        curve = sample_curve("sin(x) * cos(x/2)", x_min=-100, x_max=100, step=0.02)
        elapsed = time.time() - start
        assert curve.ok
        assert elapsed < 5.0, f"Dense sampling too slow: {elapsed}s"
