import pytest

from relaygate.identity import ZERO_IDENTITY, is_zero_identity, parse_identity
from relaygate.records import PauseStateRecord, TransferRecord, record_from_dict
from relaygate.security import (
    ValidationError,
    caller_from_headers,
    extract_client_id,
    request_id_from_headers,
    validate_hex_payload,
    validate_message_type,
)

from conftest import BOB, OWNER


def test_parse_identity_normalizes_case():
    assert parse_identity("0x" + "AbC" * 13 + "d") == "0x" + "abc" * 13 + "d"
    assert parse_identity("  " + OWNER + " ") == OWNER


@pytest.mark.parametrize("value", ["", "0x", "0x123", OWNER[2:], "0y" + "a" * 40, OWNER + "00", None, 42])
def test_parse_identity_rejects_malformed(value):
    with pytest.raises(ValidationError) as exc:
        parse_identity(value, "to")
    assert exc.value.field == "to"


def test_zero_identity():
    assert is_zero_identity(ZERO_IDENTITY)
    assert is_zero_identity("0X" + "0" * 40)
    assert not is_zero_identity(OWNER)


def test_hex_payload_validation():
    assert validate_hex_payload("0x") == "0x"
    assert validate_hex_payload("0xDEAD") == "0xdead"
    for bad in ("dead", "0xabc", "0xgg", "0x de ad", 5):
        with pytest.raises(ValidationError):
            validate_hex_payload(bad)


def test_message_type_validation():
    assert validate_message_type(0) == 0
    assert validate_message_type("42") == 42
    assert validate_message_type(str(2 ** 256 - 1)) == 2 ** 256 - 1
    for bad in (-1, 2 ** 256, "x", None, True, 1.5):
        with pytest.raises(ValidationError):
            validate_message_type(bad)


def test_caller_and_request_id_headers():
    assert caller_from_headers({"x-caller-identity": f" {OWNER} "}) == OWNER
    assert caller_from_headers({}) is None
    assert request_id_from_headers({"x-request-id": "abc-123"}) == "abc-123"
    assert request_id_from_headers({"x-request-id": "bad id!"}) != "bad id!"


def test_extract_client_id():
    assert extract_client_id(BOB) == f"caller:{BOB}"


def test_record_dict_round_trip_preserves_payload():
    record = TransferRecord(OWNER, BOB, 2 ** 255, b"\x00\xff")
    assert record_from_dict(record.to_dict()) == record
    assert record_from_dict({"record_type": "PauseStateChanged", "is_paused": False}) == PauseStateRecord(False)


def test_record_from_dict_rejects_unknown_or_incomplete():
    with pytest.raises(ValueError, match="unknown record type"):
        record_from_dict({"record_type": "Mint"})
    with pytest.raises(ValueError, match="missing field"):
        record_from_dict({"record_type": "OwnershipTransferred", "previous_owner": OWNER})
