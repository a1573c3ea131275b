"""
One receiving transfer: a decoder plus the bookkeeping around it.

The decoder itself is not thread-safe. A scanner thread submits droplets
here, which serializes them behind a lock, while UI or HTTP readers take
``snapshot()``, an immutable progress record replaced after every change.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from droplet import DropletPayload
from errors import DecodeError, ErrorKind
from fountain_code import LTDecoder
from settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Progress:
    num_blocks: int
    num_solved: int
    num_pending: int
    droplets_received: int
    progress: float
    is_complete: bool
    stalled: bool


class ReceiverSession:
    """Decoder for one file transfer, safe to feed from one thread and read from others."""

    def __init__(self, num_blocks: int, block_size: int, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.decoder = LTDecoder(
            num_blocks,
            block_size=block_size,
            generator=self.settings.generator,
            max_idle_passes=self.settings.max_idle_passes,
        )
        self._lock = threading.Lock()
        self._snapshot: Optional[Progress] = None
        self._snapshot = self._build_snapshot()

    @classmethod
    def from_record(cls, record: DropletPayload, settings: Optional[Settings] = None) -> "ReceiverSession":
        """Start a session from the parameters declared by its first droplet."""
        return cls(record.num_blocks, record.block_size, settings)

    @property
    def num_blocks(self) -> int:
        return self.decoder.num_blocks

    @property
    def block_size(self) -> int:
        return self.decoder.block_size

    def submit(self, record: DropletPayload) -> Progress:
        """
        Feed one droplet record to the decoder.

        Raises:
            DecodeError: if the record belongs to a different transfer or is
                rejected by the decoder; the session is unchanged
        """
        if record.num_blocks != self.num_blocks:
            raise DecodeError(
                ErrorKind.MALFORMED_DROPLET,
                f"Droplet declares {record.num_blocks} blocks, session expects {self.num_blocks}",
            )
        if record.block_size != self.block_size:
            raise DecodeError(
                ErrorKind.PAYLOAD_SIZE_MISMATCH,
                f"Droplet declares block size {record.block_size}, session expects {self.block_size}",
            )
        payload = record.payload_bytes()

        with self._lock:
            try:
                self.decoder.ingest(record.seed, payload, record.file_size)
            finally:
                # An inconsistent solve still records the droplet as pending
                self._snapshot = self._build_snapshot()
            return self._snapshot

    def snapshot(self) -> Progress:
        """Latest published progress; never blocks on a running ingest."""
        return self._snapshot

    def result(self) -> bytes:
        with self._lock:
            return self.decoder.get_result()

    def reset(self) -> Progress:
        with self._lock:
            self.decoder.reset()
            self._snapshot = self._build_snapshot()
            logger.info("Session reset (%d blocks of %d bytes)", self.num_blocks, self.block_size)
            return self._snapshot

    def _build_snapshot(self) -> Progress:
        decoder = self.decoder
        complete = decoder.is_complete()
        received = decoder.num_processed
        stalled = not complete and received >= self.settings.stall_factor * decoder.num_blocks
        was_stalled = self._snapshot is not None and self._snapshot.stalled
        if stalled and not was_stalled:
            logger.warning(
                "Received %d droplets but only solved %d/%d blocks (%d pending)",
                received, decoder.num_solved, decoder.num_blocks, decoder.num_pending,
            )
        return Progress(
            num_blocks=decoder.num_blocks,
            num_solved=decoder.num_solved,
            num_pending=decoder.num_pending,
            droplets_received=received,
            progress=decoder.progress_percent(),
            is_complete=complete,
            stalled=stalled,
        )

