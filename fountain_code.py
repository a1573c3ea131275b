"""
Fountain Code (Luby Transform Code) Decoder
Peeling decoder for droplets scanned from a QR code stream
"""
import logging
from typing import Dict, List, Mapping, Optional, Set

from droplet import decode_payload
from errors import DecodeError, ErrorKind
from rng import DEFAULT_GENERATOR, block_indices, make_generator

logger = logging.getLogger(__name__)

# Seeds whose derived indices are logged at DEBUG level per session
_DEBUG_SEED_LIMIT = 10


class LTDecoder:
    """Luby Transform Decoder for fountain codes"""

    def __init__(
        self,
        num_blocks: int,
        block_size: int = 256,
        *,
        generator: str = DEFAULT_GENERATOR,
        max_idle_passes: int = 10,
    ):
        """
        Initialize decoder.

        Args:
            num_blocks: Expected number of blocks
            block_size: Size of each block in bytes
            generator: Name of the seeded generator the sender uses
            max_idle_passes: Consecutive propagation passes without a new
                solve before the backlog is left for later droplets
        """
        if num_blocks < 0:
            raise ValueError("num_blocks must be non-negative")
        if block_size <= 0:
            raise ValueError("block_size must be a positive integer")
        if max_idle_passes < 1:
            raise ValueError("max_idle_passes must be at least 1")
        # Fail on an unknown generator now rather than on the first droplet
        make_generator(generator, 0)

        self.num_blocks = num_blocks
        self.block_size = block_size
        self.generator = generator
        self.max_idle_passes = max_idle_passes

        self.solved_blocks: List[Optional[bytes]] = [None] * num_blocks
        self.num_solved = 0
        self.file_size: Optional[int] = None
        self.processed_seeds: Set[int] = set()

        # Droplets with more than one unknown block, kept until a later solve
        # reduces them to exactly one
        self.pending_droplets: List[Dict] = []

    def add_droplet(self, droplet: Mapping) -> bool:
        """
        Add a received droplet and attempt to solve blocks.

        Args:
            droplet: Dictionary with seed, data (base64) and optionally file_size

        Returns:
            True if all blocks are solved, False otherwise

        Raises:
            DecodeError: if the droplet is malformed or has the wrong size
        """
        seed = droplet.get("seed")
        if "data" not in droplet:
            raise DecodeError(ErrorKind.MALFORMED_DROPLET, f"Missing 'data' in droplet (seed {seed})")
        payload = decode_payload(droplet["data"], seed=seed)
        return self.ingest(seed, payload, droplet.get("file_size"))

    def ingest(self, seed: int, payload: bytes, file_size: Optional[int] = None) -> bool:
        """
        Ingest one decoded droplet.

        Re-ingesting a seed that was already processed changes nothing.

        Returns:
            True if all blocks are solved, False otherwise
        """
        if not isinstance(seed, int) or isinstance(seed, bool):
            raise DecodeError(ErrorKind.MALFORMED_DROPLET, f"Missing or invalid 'seed' in droplet: {seed!r}")
        if len(payload) != self.block_size:
            raise DecodeError(
                ErrorKind.PAYLOAD_SIZE_MISMATCH,
                f"Droplet data size ({len(payload)}) does not match block size ({self.block_size}). Seed: {seed}",
            )
        if file_size is not None and (not isinstance(file_size, int) or file_size < 0):
            raise DecodeError(ErrorKind.MALFORMED_DROPLET, f"Invalid 'file_size' in droplet: {file_size!r}")

        if seed in self.processed_seeds:
            return self.is_complete()

        # Only the first droplet of a session may set the file size
        if not self.processed_seeds and file_size is not None:
            self.file_size = file_size

        if self.num_blocks == 0:
            self.processed_seeds.add(seed)
            return True

        indices = block_indices(seed, self.num_blocks, self.generator)
        unknown = [idx for idx in indices if self.solved_blocks[idx] is None]
        if len(self.processed_seeds) < _DEBUG_SEED_LIMIT:
            logger.debug("Seed %d -> block indices %s, unknown: %d", seed, indices, len(unknown))

        self.processed_seeds.add(seed)

        if len(unknown) == 1:
            try:
                self._solve(unknown[0], indices, payload)
            except DecodeError:
                self.pending_droplets.append({"seed": seed, "data": bytes(payload), "block_indices": indices})
                raise
            self.process_pending_aggressively()
        elif len(unknown) > 1:
            self.pending_droplets.append({"seed": seed, "data": bytes(payload), "block_indices": indices})
        # No unknown blocks: the droplet is redundant

        complete = self.is_complete()
        if complete and len(unknown) == 1:
            logger.info("All %d blocks solved after %d droplets", self.num_blocks, len(self.processed_seeds))
        return complete

    def _solve(self, target_idx: int, indices: List[int], data: bytes) -> None:
        """XOR every known block out of ``data`` and store the result as ``target_idx``."""
        result = bytearray(data)
        for idx in indices:
            if idx == target_idx:
                continue
            known_block = self.solved_blocks[idx]
            if len(known_block) != len(result):
                raise DecodeError(
                    ErrorKind.INCONSISTENT_SOLVE,
                    f"Block size mismatch when solving block {target_idx}: "
                    f"known block {idx} has {len(known_block)} bytes, droplet has {len(result)}",
                )
            for i in range(len(result)):
                result[i] ^= known_block[i]

        self.solved_blocks[target_idx] = bytes(result)
        self.num_solved += 1

    def _process_pending_droplets(self) -> None:
        """Try to solve pending droplets with newly solved blocks"""
        remaining = []
        for droplet in self.pending_droplets:
            indices = droplet["block_indices"]
            unknown = [idx for idx in indices if self.solved_blocks[idx] is None]

            if len(unknown) == 1:
                try:
                    self._solve(unknown[0], indices, droplet["data"])
                except DecodeError as e:
                    logger.warning("Keeping droplet %d pending: %s", droplet["seed"], e)
                    remaining.append(droplet)
            elif len(unknown) > 1:
                remaining.append(droplet)

        self.pending_droplets = remaining

    def process_pending_aggressively(self) -> int:
        """
        Repeat propagation passes over the backlog until they stop solving blocks.

        Gives up after ``max_idle_passes`` consecutive passes without
        progress. That only means nothing more can be solved right now; the
        backlog stays for later droplets.

        Returns:
            Number of blocks solved
        """
        start = self.num_solved
        previous_solved = self.num_solved
        idle_passes = 0
        while idle_passes < self.max_idle_passes and not self.is_complete():
            self._process_pending_droplets()
            if self.num_solved > previous_solved:
                previous_solved = self.num_solved
                idle_passes = 0
            else:
                idle_passes += 1
        return self.num_solved - start

    @property
    def num_pending(self) -> int:
        return len(self.pending_droplets)

    @property
    def num_processed(self) -> int:
        return len(self.processed_seeds)

    def has_block(self, index: int) -> bool:
        """Check if a specific block has been solved"""
        return 0 <= index < self.num_blocks and self.solved_blocks[index] is not None

    def progress_percent(self) -> float:
        """Solved blocks as a percentage (0.0 to 100.0)"""
        if self.num_blocks == 0:
            return 100.0
        return (self.num_solved / self.num_blocks) * 100

    def is_complete(self) -> bool:
        """Check that the counter and the block store both say every block is solved"""
        if self.num_solved < self.num_blocks:
            return False
        return all(block is not None for block in self.solved_blocks)

    def get_result(self) -> bytes:
        """
        Reconstruct the original file from solved blocks.

        Returns:
            Reconstructed file bytes

        Raises:
            DecodeError: (not_complete) before every block is solved,
                (missing_block) if a block is absent despite completion
        """
        if not self.is_complete():
            raise DecodeError(
                ErrorKind.NOT_COMPLETE,
                f"Not all blocks are solved yet. Progress: {self.progress_percent():.1f}%",
            )

        # Reconstruct file in order
        result_parts = []
        for i in range(self.num_blocks):
            block = self.solved_blocks[i]
            if block is None:
                raise DecodeError(ErrorKind.MISSING_BLOCK, f"Block {i} is missing")
            result_parts.append(block)

        # Remove padding from last block if file_size is known
        if result_parts and self.file_size is not None:
            actual_size = self.file_size % self.block_size
            if actual_size > 0:
                result_parts[-1] = result_parts[-1][:actual_size]

        return b"".join(result_parts)

    def reset(self) -> None:
        """Clear all solved blocks, pending droplets and seen seeds"""
        self.solved_blocks = [None] * self.num_blocks
        self.num_solved = 0
        self.file_size = None
        self.processed_seeds = set()
        self.pending_droplets = []
