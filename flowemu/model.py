"""Chain data model: identifiers, blocks, collections, transactions, events and ledger state."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

import cbor2

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
GENESIS_TIME = datetime(2018, 12, 19, 22, 32, 30, tzinfo=timezone.utc)


class Identifier(bytes):
    """A 32-byte entity identifier."""

    SIZE = 32

    def __new__(cls, value: bytes = bytes(32)) -> "Identifier":
        data = bytes(value)
        if len(data) != cls.SIZE:
            raise ValueError(f"identifier must be {cls.SIZE} bytes, got {len(data)}")
        return super().__new__(cls, data)

    @classmethod
    def from_hex(cls, text: str) -> "Identifier":
        """Parse an identifier from its hexadecimal form."""
        try:
            data = bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError(f"invalid identifier hex: {text!r}") from exc
        return cls(data)

    def short(self) -> str:
        """The first six hex digits, for log output."""
        return str(self)[:6]

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"Identifier({self.hex()!r})"


ZERO_ID = Identifier()


def _plain(value: Any) -> Any:
    if isinstance(value, bytes):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def _fingerprint(*parts: Any) -> Identifier:
    encoded = cbor2.dumps(_plain(list(parts)), canonical=True)
    return Identifier(hashlib.sha3_256(encoded).digest())


def _micros(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return (ts - _EPOCH) // timedelta(microseconds=1)


@dataclass
class Header:
    """Block header."""

    chain_id: str = ""
    parent_id: Identifier = ZERO_ID
    height: int = 0
    view: int = 0
    timestamp: datetime = _ZERO_TIME
    payload_hash: Identifier = ZERO_ID
    proposer_id: Identifier = ZERO_ID


@dataclass
class CollectionGuarantee:
    """A guarantee that a collection is available."""

    collection_id: Identifier = ZERO_ID
    reference_block_id: Identifier = ZERO_ID
    signer_indices: bytes = b""
    signature: bytes = b""

    def id(self) -> Identifier:
        return self.collection_id


@dataclass
class Payload:
    """Block payload."""

    guarantees: list[CollectionGuarantee] = field(default_factory=list)

    def _hash(self) -> Identifier:
        return _fingerprint(
            [
                [g.collection_id, g.reference_block_id, g.signer_indices, g.signature]
                for g in self.guarantees
            ]
        )


@dataclass
class Block:
    """A block: header plus optional payload."""

    header: Header = field(default_factory=Header)
    payload: Optional[Payload] = None

    def id(self) -> Identifier:
        h = self.header
        return _fingerprint(
            h.chain_id,
            h.parent_id,
            h.height,
            h.view,
            _micros(h.timestamp),
            h.payload_hash,
            h.proposer_id,
        )


def genesis(chain_id: str) -> Block:
    """The genesis block for the given chain."""
    payload = Payload()
    header = Header(
        chain_id=chain_id,
        parent_id=ZERO_ID,
        height=0,
        view=0,
        timestamp=GENESIS_TIME,
        payload_hash=payload._hash(),
    )
    return Block(header=header, payload=payload)


@dataclass
class LightCollection:
    """A collection holding transaction IDs only."""

    transactions: list[Identifier] = field(default_factory=list)

    def id(self) -> Identifier:
        return _fingerprint(list(self.transactions))


@dataclass
class ProposalKey:
    """The key that proposes a transaction."""

    address: str = ""
    key_index: int = 0
    sequence_number: int = 0


@dataclass
class TransactionBody:
    """A transaction as submitted to the network."""

    reference_block_id: Identifier = ZERO_ID
    script: bytes = b""
    arguments: list[bytes] = field(default_factory=list)
    gas_limit: int = 0
    proposal_key: ProposalKey = field(default_factory=ProposalKey)
    payer: str = ""
    authorizers: list[str] = field(default_factory=list)
    payload_signatures: list[bytes] = field(default_factory=list)
    envelope_signatures: list[bytes] = field(default_factory=list)

    def id(self) -> Identifier:
        key = self.proposal_key
        return _fingerprint(
            self.reference_block_id,
            self.script,
            list(self.arguments),
            self.gas_limit,
            [key.address, key.key_index, key.sequence_number],
            self.payer,
            list(self.authorizers),
            list(self.payload_signatures),
            list(self.envelope_signatures),
        )


@dataclass
class Collection:
    """A collection holding full transaction bodies."""

    transactions: list[TransactionBody] = field(default_factory=list)

    def light(self) -> LightCollection:
        return LightCollection(transactions=[tx.id() for tx in self.transactions])

    def id(self) -> Identifier:
        return self.light().id()


@dataclass
class Event:
    """An event emitted by a transaction."""

    type: str = ""
    transaction_id: Identifier = ZERO_ID
    transaction_index: int = 0
    event_index: int = 0
    payload: bytes = b""


@dataclass(frozen=True)
class RegisterID:
    """Address of a ledger register."""

    owner: bytes = b""
    key: str = ""

    def __str__(self) -> str:
        return f"{self.owner.hex()}/{self.key}"


@dataclass
class ExecutionSnapshot:
    """Registers written while executing a block."""

    write_set: dict[RegisterID, Optional[bytes]] = field(default_factory=dict)


class SnapshotTree:
    """An immutable, layered view of ledger state."""

    _COMPACT_THRESHOLD = 10

    def __init__(self, base: Any = None) -> None:
        self._base = base
        self._layers: tuple[Mapping[RegisterID, Optional[bytes]], ...] = ()

    def append(self, snapshot: Optional[ExecutionSnapshot]) -> "SnapshotTree":
        """Return a new tree with the snapshot's writes layered on top."""
        tree = SnapshotTree(self._base)
        layers = self._layers
        if snapshot is not None and snapshot.write_set:
            layers = layers + (dict(snapshot.write_set),)
            if len(layers) > self._COMPACT_THRESHOLD:
                merged: dict[RegisterID, Optional[bytes]] = {}
                for layer in layers:
                    merged.update(layer)
                layers = (merged,)
        tree._layers = layers
        return tree

    def get(self, register_id: RegisterID) -> Optional[bytes]:
        """The newest value of the register, or None if never written."""
        for layer in reversed(self._layers):
            if register_id in layer:
                return layer[register_id]
        if self._base is None:
            return None
        return self._base.get(register_id)