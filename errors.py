"""Error kinds raised while decoding a droplet stream."""
from enum import Enum


class ErrorKind(str, Enum):
    MALFORMED_DROPLET = "malformed_droplet"
    PAYLOAD_SIZE_MISMATCH = "payload_size_mismatch"
    INCONSISTENT_SOLVE = "inconsistent_solve"
    NOT_COMPLETE = "not_complete"
    MISSING_BLOCK = "missing_block"


class DecodeError(ValueError):
    """
    A droplet or decoder operation failed.

    ``kind`` tells the caller what went wrong; the message is for humans.
    Every kind is local to one operation and the decoder stays usable.
    """

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": str(self)}
