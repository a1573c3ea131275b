import json

import pytest

from conftest import DropletFactory
from droplet import DropletPayload, parse_droplet, to_text
from errors import DecodeError, ErrorKind


def test_parse_scanned_text():
    factory = DropletFactory(b"hello world", block_size=4)
    text = json.dumps(factory.droplet(17))

    record = parse_droplet(text)

    assert record.seed == 17
    assert record.num_blocks == 3
    assert record.file_size == 11
    assert record.block_size == 4
    assert record.payload_bytes() == factory.payload(17)


def test_to_text_is_parseable():
    record = DropletPayload(seed=3, data="YWJjZA==", num_blocks=1, file_size=4, block_size=4)
    assert parse_droplet(to_text(record)) == record


def test_file_size_is_optional():
    record = parse_droplet('{"seed": 1, "data": "YWJjZA==", "num_blocks": 1, "block_size": 4}')
    assert record.file_size is None


def test_line_breaks_in_payload_are_ignored():
    record = DropletPayload(seed=3, data="YWJj\nZA==", num_blocks=1, block_size=4)
    assert record.payload_bytes() == b"abcd"


@pytest.mark.parametrize("text", [
    "",
    "not json",
    '{"data": "YWJjZA==", "num_blocks": 1}',
    '{"seed": 1, "num_blocks": 1}',
    '{"seed": "1", "data": "YWJjZA==", "num_blocks": 1, "block_size": 4}',
    '{"seed": 1, "data": "YWJjZA==", "num_blocks": -1}',
    '{"seed": 1, "data": "YWJjZA==", "num_blocks": 1, "block_size": 0}',
])
def test_bad_records_are_malformed(text):
    with pytest.raises(DecodeError) as excinfo:
        parse_droplet(text)
    assert excinfo.value.kind == ErrorKind.MALFORMED_DROPLET


def test_bad_base64_is_malformed():
    record = DropletPayload(seed=3, data="@@@@", num_blocks=1, block_size=4)
    with pytest.raises(DecodeError) as excinfo:
        record.payload_bytes()
    assert excinfo.value.kind == ErrorKind.MALFORMED_DROPLET
    assert excinfo.value.to_dict()["kind"] == "malformed_droplet"
