from datetime import datetime, timezone

import pytest

from flowemu.encoding import (
    decode_block,
    decode_collection,
    decode_events,
    decode_transaction,
    decode_transaction_result,
    decode_uint64,
    encode_block,
    encode_collection,
    encode_events,
    encode_transaction,
    encode_transaction_result,
    encode_uint64,
)
from flowemu.model import (
    Block,
    CollectionGuarantee,
    Event,
    Header,
    Identifier,
    LightCollection,
    Payload,
    ProposalKey,
    TransactionBody,
    genesis,
)
from flowemu.results import StorableTransactionResult


def _id(n):
    return Identifier(bytes([n]) * 32)


def _transaction():
    return TransactionBody(
        reference_block_id=_id(7),
        script=b"transaction { execute { log(1) } }",
        arguments=[b'{"type":"Int","value":"1"}'],
        gas_limit=42,
        proposal_key=ProposalKey(address="01cf0e2f2f715450", key_index=3, sequence_number=42),
        payer="179b6b1cb6755e31",
        authorizers=["f3fcd2c1a78f5eee"],
        payload_signatures=[b"\x01\x02"],
        envelope_signatures=[b"\x03\x04"],
    )


def _events(encoding, count=2):
    return [
        Event(
            type="A.7e60df042a9c0868.FlowToken.AccountCreated",
            transaction_id=_id(i + 1),
            transaction_index=i,
            event_index=i * 2,
            payload=f"{encoding}:{i}".encode(),
        )
        for i in range(count)
    ]


def test_encode_transaction_round_trip():
    tx = _transaction()
    decoded = decode_transaction(encode_transaction(tx))
    assert decoded.id() == tx.id()
    assert decoded == tx


@pytest.mark.parametrize("encoding", ["ccf", "json-cdc"])
def test_encode_transaction_result_round_trip(encoding):
    result = StorableTransactionResult(
        error_code=42,
        error_message="foo",
        logs=["a", "b", "c"],
        events=_events(encoding),
    )
    assert decode_transaction_result(encode_transaction_result(result)) == result


def test_encode_block_round_trip():
    block = Block(
        header=Header(height=1234, parent_id=_id(1)),
        payload=Payload(guarantees=[CollectionGuarantee(collection_id=_id(2))]),
    )
    decoded = decode_block(encode_block(block))
    assert decoded.id() == block.id()
    assert decoded.header == block.header
    assert decoded.payload == block.payload


def test_encode_genesis_block_round_trip():
    block = genesis("flow-emulator")
    decoded = decode_block(encode_block(block))
    assert decoded.id() == block.id()
    assert decoded.header == block.header
    assert decoded.payload == block.payload


def test_block_without_payload_round_trip():
    block = Block(header=Header(height=5, timestamp=datetime(2024, 1, 2, 3, 4, 5, 678, tzinfo=timezone.utc)))
    decoded = decode_block(encode_block(block))
    assert decoded.payload is None
    assert decoded.header.timestamp == block.header.timestamp


@pytest.mark.parametrize("encoding", ["ccf", "json-cdc"])
def test_encode_events_round_trip(encoding):
    events = _events(encoding)
    assert decode_events(encode_events(events)) == events


def test_encode_events_none_is_empty():
    assert decode_events(encode_events(None)) == []


def test_collection_round_trip():
    col = LightCollection(transactions=[_id(1), _id(2), _id(3)])
    decoded = decode_collection(encode_collection(col))
    assert decoded == col
    assert decoded.id() == col.id()


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, b"\x00"),
        (23, b"\x17"),
        (1234, b"\x19\x04\xd2"),
        (2**64 - 1, b"\x1b" + b"\xff" * 8),
    ],
)
def test_encode_uint64_values(value, expected):
    assert encode_uint64(value) == expected
    assert decode_uint64(expected) == value


def test_encode_uint64_rejects_out_of_range():
    with pytest.raises(ValueError):
        encode_uint64(-1)
    with pytest.raises(ValueError):
        encode_uint64(2**64)


def test_decode_garbage_raises():
    with pytest.raises(ValueError):
        decode_block(b"\xff")


def test_decode_wrong_type_raises():
    with pytest.raises(ValueError):
        decode_uint64(encode_events([]))