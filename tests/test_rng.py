import random

import pytest

from rng import GENERATORS, MAX_DEGREE, PythonRandom, SeededGenerator, SimpleRNG, block_indices, make_generator


@pytest.mark.parametrize("seed, num_blocks, expected", [
    (0, 3, [2, 1]),
    (42, 20, [8, 7, 6, 4]),
    (12345, 100, [67, 78, 17, 97, 90, 29, 59, 30, 85]),
    (7, 1, [0]),
    (2147483647, 50, [5, 32, 20, 15, 41, 34, 45]),
])
def test_lcg_known_answers(seed, num_blocks, expected):
    assert block_indices(seed, num_blocks, "lcg-v1") == expected


def test_lcg_state_is_32_bit():
    rng = SimpleRNG(-1)
    assert rng.state == 0xFFFFFFFF
    rng.randint(0, 9)
    assert 0 <= rng.state <= 0xFFFFFFFF
    assert SimpleRNG(2**32 + 5).state == SimpleRNG(5).state


@pytest.mark.parametrize("seed", [0, 1, 99, 123456789, 2**31 - 1])
@pytest.mark.parametrize("num_blocks", [1, 4, 40])
def test_cpython_generator_matches_sender(seed, num_blocks):
    # Same calls the sender's generate_droplet makes on the global generator
    random.seed(seed)
    num_to_select = random.randint(1, min(num_blocks, 10))
    expected = random.sample(range(num_blocks), num_to_select)

    assert block_indices(seed, num_blocks, "cpython-mt") == expected


@pytest.mark.parametrize("num_blocks", [1, 2, 3, 10, 11, 64])
def test_derived_indices_are_valid(generator, num_blocks):
    for seed in range(300):
        indices = block_indices(seed, num_blocks, generator)
        assert len(set(indices)) == len(indices)
        assert 1 <= len(indices) <= min(num_blocks, MAX_DEGREE)
        assert all(0 <= idx < num_blocks for idx in indices)


def test_derivation_is_repeatable(generator):
    first = [block_indices(seed, 25, generator) for seed in range(50)]
    second = [block_indices(seed, 25, generator) for seed in range(50)]
    assert first == second


def test_lcg_sample_removes_each_pick():
    rng = SimpleRNG(3)
    drawn = rng.sample(list(range(10)), 10)
    assert sorted(drawn) == list(range(10))


@pytest.mark.parametrize("cls", [SimpleRNG, PythonRandom])
def test_configuration_faults_raise(cls):
    rng = cls(1)
    with pytest.raises(ValueError):
        rng.randint(5, 4)
    with pytest.raises(ValueError):
        rng.sample(range(3), 4)
    with pytest.raises(ValueError):
        rng.sample(range(3), -1)


@pytest.mark.parametrize("name", sorted(GENERATORS))
def test_registered_generators_expose_draw_interface(name):
    rng = make_generator(name, 5)
    assert isinstance(rng, SeededGenerator)
    assert 1 <= rng.randint(1, 3) <= 3
    assert len(rng.sample(range(8), 2)) == 2


def test_unknown_generator_is_rejected():
    with pytest.raises(ValueError, match="Unknown generator"):
        make_generator("xorshift", 1)
