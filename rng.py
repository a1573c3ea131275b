"""
Seeded sequence generators for droplet block selection.

The sender picks the blocks of every droplet from a generator seeded with
the droplet's seed; the receiver must replay exactly the same draws. Which
generator the sender uses is a configuration choice, so each one is
registered under a version name.
"""
import random
from typing import Callable, Dict, List, Protocol, Sequence, runtime_checkable

# Upper bound on the number of blocks XORed into one droplet
MAX_DEGREE = 10


@runtime_checkable
class SeededGenerator(Protocol):
    """Draws the sender makes for one droplet."""

    def randint(self, a: int, b: int) -> int: ...

    def sample(self, population: Sequence[int], k: int) -> List[int]: ...


class SimpleRNG:
    """
    Portable 32-bit linear congruential generator.

    Uses the Numerical Recipes constants (multiplier 1664525, increment
    1013904223, modulus 2**32) so that any language with 64-bit integers
    reproduces the same sequence.
    """

    MULTIPLIER = 1664525
    INCREMENT = 1013904223
    MASK = 0xFFFFFFFF

    def __init__(self, seed: int):
        self.state = seed & self.MASK

    def _next_int(self, bound: int) -> int:
        """Advance the state and scale it to [0, bound)."""
        if bound <= 0:
            raise ValueError("bound must be positive")
        self.state = (self.state * self.MULTIPLIER + self.INCREMENT) & self.MASK
        return self.state % bound

    def randint(self, a: int, b: int) -> int:
        """Random integer in [a, b], inclusive on both ends."""
        if a > b:
            raise ValueError(f"empty range for randint({a}, {b})")
        return a + self._next_int(b - a + 1)

    def sample(self, population: Sequence[int], k: int) -> List[int]:
        """Draw k distinct items, removing each pick before the next draw."""
        if k < 0:
            raise ValueError("Sample size must be non-negative")
        if k > len(population):
            raise ValueError("Sample larger than population")

        available = list(population)
        return [available.pop(self._next_int(len(available))) for _ in range(k)]


class PythonRandom:
    """CPython's Mersenne Twister, as used by ``random.seed(seed)`` on the sender."""

    def __init__(self, seed: int):
        self._random = random.Random(seed)

    def randint(self, a: int, b: int) -> int:
        return self._random.randint(a, b)

    def sample(self, population: Sequence[int], k: int) -> List[int]:
        return self._random.sample(population, k)


GENERATORS: Dict[str, Callable[[int], SeededGenerator]] = {
    "lcg-v1": SimpleRNG,
    "cpython-mt": PythonRandom,
}

DEFAULT_GENERATOR = "cpython-mt"


def make_generator(name: str, seed: int) -> SeededGenerator:
    """Instantiate the generator registered as ``name`` for ``seed``."""
    try:
        factory = GENERATORS[name]
    except KeyError:
        raise ValueError(
            f"Unknown generator {name!r}; expected one of {sorted(GENERATORS)}"
        ) from None
    return factory(seed)


def block_indices(seed: int, num_blocks: int, generator: str = DEFAULT_GENERATOR) -> List[int]:
    """
    Reconstruct which blocks the sender XORed into the droplet with ``seed``.

    Args:
        seed: The droplet seed
        num_blocks: Number of source blocks in the transfer
        generator: Registered generator name

    Returns:
        Block indices in draw order, without repeats
    """
    rng = make_generator(generator, seed)
    degree = rng.randint(1, min(num_blocks, MAX_DEGREE))
    return rng.sample(range(num_blocks), degree)
