"""
Droplet records as they arrive from the scanner.

A scanned QR code carries one JSON object, the same shape the sender's
``generate_droplet`` returns:

    {"seed": 123, "data": "<base64>", "num_blocks": 40,
     "file_size": 10000, "block_size": 256}
"""
import base64
import binascii
import json
from typing import Optional

from pydantic import BaseModel, Field, StrictInt, ValidationError

from errors import DecodeError, ErrorKind


class DropletPayload(BaseModel):
    seed: StrictInt
    data: str
    num_blocks: int = Field(ge=0)
    file_size: Optional[int] = Field(default=None, ge=0)
    block_size: int = Field(default=256, gt=0)

    def payload_bytes(self) -> bytes:
        """Decode the base64 ``data`` field."""
        return decode_payload(self.data, seed=self.seed)


def decode_payload(data: str, seed: Optional[int] = None) -> bytes:
    """
    Decode a base64 droplet payload.

    Line breaks and spaces inserted by QR readers are ignored; any other
    non-alphabet character makes the droplet malformed.
    """
    if not isinstance(data, str):
        raise DecodeError(ErrorKind.MALFORMED_DROPLET, f"Missing or invalid 'data' in droplet (seed {seed})")
    try:
        return base64.b64decode("".join(data.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(
            ErrorKind.MALFORMED_DROPLET, f"Droplet data is not valid base64 (seed {seed}): {e}"
        ) from e


def parse_droplet(text: str) -> DropletPayload:
    """
    Parse the text of one scanned code into a droplet record.

    Raises:
        DecodeError: (malformed_droplet) if the text is not a droplet record
    """
    try:
        return DropletPayload.model_validate_json(text.strip())
    except ValidationError as e:
        raise DecodeError(ErrorKind.MALFORMED_DROPLET, f"Not a droplet record: {e.error_count()} invalid field(s)") from e


def to_text(droplet: DropletPayload) -> str:
    """Serialize a record back to the compact JSON the sender puts in a QR code."""
    return json.dumps(droplet.model_dump(), separators=(",", ":"))
