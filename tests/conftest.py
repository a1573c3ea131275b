"""
Droplet factory mirroring the qrtx sender, so decoder tests can produce
streams with the same generator/XOR scheme.
"""
import base64
from typing import Dict, Iterable, List

import pytest

from rng import DEFAULT_GENERATOR, block_indices


class DropletFactory:
    def __init__(self, data: bytes, block_size: int, generator: str = DEFAULT_GENERATOR):
        self.data = data
        self.block_size = block_size
        self.generator = generator
        self.num_blocks = (len(data) + block_size - 1) // block_size
        self.file_size = len(data)
        self.blocks: List[bytes] = [
            data[i * block_size:(i + 1) * block_size].ljust(block_size, b"\x00")
            for i in range(self.num_blocks)
        ]

    def payload(self, seed: int) -> bytes:
        result = bytearray(self.block_size)
        for idx in block_indices(seed, self.num_blocks, self.generator):
            for i, byte in enumerate(self.blocks[idx]):
                result[i] ^= byte
        return bytes(result)

    def droplet(self, seed: int) -> Dict:
        return {
            "seed": seed,
            "data": base64.b64encode(self.payload(seed)).decode("utf-8"),
            "num_blocks": self.num_blocks,
            "file_size": self.file_size,
            "block_size": self.block_size,
        }

    def droplets(self, seeds: Iterable[int]) -> List[Dict]:
        return [self.droplet(seed) for seed in seeds]


def find_seed(num_blocks: int, wanted, generator: str = DEFAULT_GENERATOR, start: int = 0) -> int:
    """First seed from ``start`` whose derived block set equals ``wanted``."""
    wanted = set(wanted)
    for seed in range(start, start + 100000):
        if set(block_indices(seed, num_blocks, generator)) == wanted:
            return seed
    raise AssertionError(f"no seed selects {sorted(wanted)} out of {num_blocks} blocks")


@pytest.fixture(params=["cpython-mt", "lcg-v1"])
def generator(request) -> str:
    return request.param

