"""Canonical CBOR encoding of the records kept by a store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, TypeVar

import cbor2

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
)
from flowemu.results import StorableTransactionResult

_UINT64_MAX = 2**64 - 1

T = TypeVar("T")


def _dumps(value: Any) -> bytes:
    return cbor2.dumps(value, canonical=True)


def _loads(data: bytes, build: Callable[[Any], T], what: str) -> T:
    try:
        raw = cbor2.loads(bytes(data))
        return build(raw)
    except (cbor2.CBORDecodeError, ValueError, TypeError, KeyError, AttributeError) as exc:
        raise ValueError(f"could not decode {what}: {exc}") from exc


def _time_to_text(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    else:
        ts = ts.astimezone(timezone.utc)
    return ts.isoformat().replace("+00:00", "Z")


def _time_from_text(text: str) -> datetime:
    if not isinstance(text, str):
        raise TypeError("timestamp must be a string")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _bytes(value: Any) -> bytes:
    if not isinstance(value, bytes):
        raise TypeError(f"expected bytes, got {type(value).__name__}")
    return bytes(value)


def _int(value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"expected an integer, got {type(value).__name__}")
    return value


def _str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value


def _list(value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"expected a list, got {type(value).__name__}")
    return value


# --- to plain structures -------------------------------------------------


def _header_map(h: Header) -> dict:
    return {
        "ChainID": h.chain_id,
        "ParentID": bytes(h.parent_id),
        "Height": h.height,
        "View": h.view,
        "Timestamp": _time_to_text(h.timestamp),
        "PayloadHash": bytes(h.payload_hash),
        "ProposerID": bytes(h.proposer_id),
    }


def _payload_map(p: Optional[Payload]) -> Optional[dict]:
    if p is None:
        return None
    return {
        "Guarantees": [
            {
                "CollectionID": bytes(g.collection_id),
                "ReferenceBlockID": bytes(g.reference_block_id),
                "SignerIndices": bytes(g.signer_indices),
                "Signature": bytes(g.signature),
            }
            for g in p.guarantees
        ]
    }


def _tx_map(tx: TransactionBody) -> dict:
    return {
        "ReferenceBlockID": bytes(tx.reference_block_id),
        "Script": bytes(tx.script),
        "Arguments": [bytes(a) for a in tx.arguments],
        "GasLimit": tx.gas_limit,
        "ProposalKey": {
            "Address": tx.proposal_key.address,
            "KeyIndex": tx.proposal_key.key_index,
            "SequenceNumber": tx.proposal_key.sequence_number,
        },
        "Payer": tx.payer,
        "Authorizers": list(tx.authorizers),
        "PayloadSignatures": [bytes(s) for s in tx.payload_signatures],
        "EnvelopeSignatures": [bytes(s) for s in tx.envelope_signatures],
    }


def _event_map(e: Event) -> dict:
    return {
        "Type": e.type,
        "TransactionID": bytes(e.transaction_id),
        "TransactionIndex": e.transaction_index,
        "EventIndex": e.event_index,
        "Payload": bytes(e.payload),
    }


# --- from plain structures -----------------------------------------------


def _header_from(raw: dict) -> Header:
    return Header(
        chain_id=_str(raw["ChainID"]),
        parent_id=Identifier(_bytes(raw["ParentID"])),
        height=_int(raw["Height"]),
        view=_int(raw["View"]),
        timestamp=_time_from_text(raw["Timestamp"]),
        payload_hash=Identifier(_bytes(raw["PayloadHash"])),
        proposer_id=Identifier(_bytes(raw["ProposerID"])),
    )


def _payload_from(raw: Optional[dict]) -> Optional[Payload]:
    if raw is None:
        return None
    return Payload(
        guarantees=[
            CollectionGuarantee(
                collection_id=Identifier(_bytes(g["CollectionID"])),
                reference_block_id=Identifier(_bytes(g["ReferenceBlockID"])),
                signer_indices=_bytes(g["SignerIndices"]),
                signature=_bytes(g["Signature"]),
            )
            for g in _list(raw["Guarantees"])
        ]
    )


def _block_from(raw: dict) -> Block:
    return Block(header=_header_from(raw["Header"]), payload=_payload_from(raw["Payload"]))


def _tx_from(raw: dict) -> TransactionBody:
    key = raw["ProposalKey"]
    return TransactionBody(
        reference_block_id=Identifier(_bytes(raw["ReferenceBlockID"])),
        script=_bytes(raw["Script"]),
        arguments=[_bytes(a) for a in _list(raw["Arguments"])],
        gas_limit=_int(raw["GasLimit"]),
        proposal_key=ProposalKey(
            address=_str(key["Address"]),
            key_index=_int(key["KeyIndex"]),
            sequence_number=_int(key["SequenceNumber"]),
        ),
        payer=_str(raw["Payer"]),
        authorizers=[_str(a) for a in _list(raw["Authorizers"])],
        payload_signatures=[_bytes(s) for s in _list(raw["PayloadSignatures"])],
        envelope_signatures=[_bytes(s) for s in _list(raw["EnvelopeSignatures"])],
    )


def _event_from(raw: dict) -> Event:
    return Event(
        type=_str(raw["Type"]),
        transaction_id=Identifier(_bytes(raw["TransactionID"])),
        transaction_index=_int(raw["TransactionIndex"]),
        event_index=_int(raw["EventIndex"]),
        payload=_bytes(raw["Payload"]),
    )


# --- public API ------------------------------------------------------------


def encode_block(block: Block) -> bytes:
    """Encode a block."""
    return _dumps({"Header": _header_map(block.header), "Payload": _payload_map(block.payload)})


def decode_block(data: bytes) -> Block:
    """Decode a block."""
    return _loads(data, _block_from, "block")


def encode_collection(collection: LightCollection) -> bytes:
    """Encode a light collection."""
    return _dumps({"Transactions": [bytes(t) for t in collection.transactions]})


def decode_collection(data: bytes) -> LightCollection:
    """Decode a light collection."""
    return _loads(
        data,
        lambda raw: LightCollection(
            transactions=[Identifier(_bytes(t)) for t in _list(raw["Transactions"])]
        ),
        "collection",
    )


def encode_transaction(tx: TransactionBody) -> bytes:
    """Encode a transaction body."""
    return _dumps(_tx_map(tx))


def decode_transaction(data: bytes) -> TransactionBody:
    """Decode a transaction body."""
    return _loads(data, _tx_from, "transaction")


def encode_transaction_result(result: StorableTransactionResult) -> bytes:
    """Encode a storable transaction result."""
    return _dumps(
        {
            "ErrorCode": result.error_code,
            "ErrorMessage": result.error_message,
            "Logs": list(result.logs),
            "Events": [_event_map(e) for e in result.events],
            "BlockID": bytes(result.block_id),
            "BlockHeight": result.block_height,
        }
    )


def decode_transaction_result(data: bytes) -> StorableTransactionResult:
    """Decode a storable transaction result."""

    def build(raw: dict) -> StorableTransactionResult:
        return StorableTransactionResult(
            error_code=_int(raw["ErrorCode"]),
            error_message=_str(raw["ErrorMessage"]),
            logs=[_str(line) for line in _list(raw["Logs"])],
            events=[_event_from(e) for e in _list(raw["Events"])],
            block_id=Identifier(_bytes(raw["BlockID"])),
            block_height=_int(raw["BlockHeight"]),
        )

    return _loads(data, build, "transaction result")


def encode_uint64(value: int) -> bytes:
    """Encode an unsigned 64-bit integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("value must be an integer")
    if not 0 <= value <= _UINT64_MAX:
        raise ValueError(f"value {value} is outside the unsigned 64-bit range")
    return _dumps(value)


def decode_uint64(data: bytes) -> int:
    """Decode an unsigned 64-bit integer."""

    def build(raw: Any) -> int:
        value = _int(raw)
        if not 0 <= value <= _UINT64_MAX:
            raise ValueError(f"value {value} is outside the unsigned 64-bit range")
        return value

    return _loads(data, build, "uint64")


def encode_events(events: Optional[Iterable[Event]]) -> bytes:
    """Encode a list of events."""
    return _dumps([_event_map(e) for e in (events or [])])


def decode_events(data: bytes) -> list[Event]:
    """Decode a list of events."""
    return _loads(data, lambda raw: [_event_from(e) for e in _list(raw)], "events")