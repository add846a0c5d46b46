"""Tests for the Alea PRNG and seed helpers."""

import pytest

from py_hexwfc.core.alea_prng import AleaPRNG
from py_hexwfc.utils.random import create_prng, derive_seed, resolve_seed


class TestAleaPRNG:
    """Test the seeded random source."""

    def test_same_seed_same_sequence(self):
        a = AleaPRNG("hex")
        b = AleaPRNG("hex")
        assert [a.random() for _ in range(20)] == [b.random() for _ in range(20)]

    def test_different_seeds_differ(self):
        a = AleaPRNG("hex1")
        b = AleaPRNG("hex2")
        assert [a.random() for _ in range(5)] != [b.random() for _ in range(5)]

    def test_range(self):
        prng = AleaPRNG("range")
        values = [prng.random() for _ in range(1000)]
        assert all(0.0 <= v < 1.0 for v in values)

    def test_call_count(self):
        prng = AleaPRNG("count")
        prng.random()
        prng.choice([1, 2, 3])
        assert prng.call_count == 2

    def test_randrange(self):
        prng = AleaPRNG("randrange")
        values = {prng.randrange(5) for _ in range(500)}
        assert values == {0, 1, 2, 3, 4}

    def test_randrange_rejects_non_positive(self):
        with pytest.raises(ValueError):
            AleaPRNG("x").randrange(0)

    def test_choice_empty(self):
        with pytest.raises(IndexError):
            AleaPRNG("x").choice([])

    def test_seed_is_kept(self):
        assert AleaPRNG("abc").seed == "abc"


class TestSeedHelpers:
    """Test seed resolution."""

    def test_resolve_keeps_seed(self):
        assert resolve_seed(42) == "42"
        assert resolve_seed("abc") == "abc"

    def test_resolve_generates_seed(self):
        seed = resolve_seed(None)
        assert isinstance(seed, str) and seed
        assert resolve_seed(None) != seed

    def test_create_prng_independent(self):
        a = create_prng("same")
        b = create_prng("same")
        a.random()
        assert a.call_count == 1
        assert b.call_count == 0

    def test_derive_seed(self):
        assert derive_seed("s", 0) == "s"
        assert derive_seed("s", 2) == "s:2"
