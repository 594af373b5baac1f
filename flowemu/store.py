"""Storage interfaces and a key-value backed store of chain state."""

from __future__ import annotations

import threading
from typing import Iterable, Mapping, Optional, Protocol, runtime_checkable

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
from flowemu.errors import EntityNotFoundError
from flowemu.model import (
    Block,
    Collection,
    Event,
    ExecutionSnapshot,
    Identifier,
    LightCollection,
    RegisterID,
    TransactionBody,
)
from flowemu.results import StorableTransactionResult

GLOBAL_STORE_NAME = "global"
BLOCK_INDEX_STORE_NAME = "blockIndex"
BLOCK_STORE_NAME = "blocks"
COLLECTION_STORE_NAME = "collections"
TRANSACTION_STORE_NAME = "transactions"
TRANSACTION_RESULT_STORE_NAME = "transactionResults"
EVENT_STORE_NAME = "events"
LEDGER_STORE_NAME = "ledger"


@runtime_checkable
class Store(Protocol):
    """Persistent chain state: finalized blocks, transactions, results, events and ledger.

    Missing entities are reported by raising EntityNotFoundError.
    """

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def latest_block_height(self) -> int: ...

    def latest_block(self) -> Block: ...

    def store_block(self, block: Block) -> None: ...

    def block_by_id(self, block_id: Identifier) -> Block: ...

    def block_by_height(self, height: int) -> Block: ...

    def commit_block(
        self,
        block: Block,
        collections: Optional[Iterable[LightCollection]],
        transactions: Optional[Mapping[Identifier, TransactionBody]],
        transaction_results: Optional[Mapping[Identifier, StorableTransactionResult]],
        execution_snapshot: Optional[ExecutionSnapshot],
        events: Optional[Iterable[Event]],
    ) -> None: ...

    def collection_by_id(self, collection_id: Identifier) -> LightCollection: ...

    def full_collection_by_id(self, collection_id: Identifier) -> Collection: ...

    def transaction_by_id(self, tx_id: Identifier) -> TransactionBody: ...

    def transaction_result_by_id(self, tx_id: Identifier) -> StorableTransactionResult: ...

    def ledger_by_height(self, height: int): ...

    def events_by_height(self, height: int, event_type: str = "") -> list[Event]: ...


@runtime_checkable
class SnapshotProvider(Protocol):
    """A store that can save and restore named snapshots."""

    def snapshots(self) -> list[str]: ...

    def create_snapshot(self, name: str) -> None: ...

    def load_snapshot(self, name: str) -> None: ...

    def support_snapshots_with_current_config(self) -> bool: ...


@runtime_checkable
class RollbackProvider(Protocol):
    """A store that can roll its state back to an earlier height."""

    def rollback_to_block_height(self, height: int) -> None: ...


class DefaultKeyGenerator:
    """Builds the table names and keys used by DefaultStore.

    Table names are the given name behind an optional prefix, which is empty
    by default so that names are used as they are.
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    def storage(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def latest_block(self) -> bytes:
        return b"latest_block_height"

    def forked_block(self) -> bytes:
        return b"forked_block_height"

    def block_height(self, height: int) -> bytes:
        return f"{height:032d}".encode()

    def identifier(self, identifier: Identifier) -> bytes:
        return bytes(identifier).hex().encode()


class _LedgerSnapshot:
    """Read view of the ledger at a fixed block height."""

    def __init__(self, store: "DefaultStore", height: int) -> None:
        self._store = store
        self._height = height

    def get(self, register_id: RegisterID) -> Optional[bytes]:
        try:
            return self._store.get_bytes_at_version(
                self._store.keys.storage(LEDGER_STORE_NAME),
                str(register_id).encode(),
                self._height,
            )
        except EntityNotFoundError:
            return None


class DefaultStore:
    """Chain state laid out over a versioned key-value backend.

    The byte-level methods keep data in memory; subclasses replace them to use
    another backend.
    """

    def __init__(self, key_generator: Optional[DefaultKeyGenerator] = None) -> None:
        self.keys = key_generator or DefaultKeyGenerator()
        self.current_height = 0
        self.running = False
        self._kv_lock = threading.RLock()
        self._kv: dict[tuple[str, bytes], dict[int, bytes]] = {}

    # --- byte-level backend -------------------------------------------------

    def get_bytes(self, store: str, key: bytes) -> bytes:
        return self.get_bytes_at_version(store, key, 0)

    def get_bytes_at_version(self, store: str, key: bytes, version: int) -> bytes:
        with self._kv_lock:
            versions = self._kv.get((store, bytes(key)), {})
            candidates = [v for v in versions if v <= version]
            if not candidates:
                raise EntityNotFoundError()
            return versions[max(candidates)]

    def set_bytes(self, store: str, key: bytes, value: bytes) -> None:
        self.set_bytes_with_version(store, key, value, 0)

    def set_bytes_with_version(self, store: str, key: bytes, value: bytes, version: int) -> None:
        with self._kv_lock:
            self._kv.setdefault((store, bytes(key)), {})[version] = bytes(value)

    # --- lifecycle ----------------------------------------------------------

    def start(self) -> None:
        """Mark the store as running."""
        self.running = True

    def stop(self) -> None:
        """Mark the store as stopped."""
        self.running = False

    # --- blocks -------------------------------------------------------------

    def set_block_height(self, height: int) -> None:
        self.current_height = height
        self.set_bytes(
            self.keys.storage(GLOBAL_STORE_NAME), self.keys.latest_block(), encode_uint64(height)
        )

    def latest_block_height(self) -> int:
        data = self.get_bytes(self.keys.storage(GLOBAL_STORE_NAME), self.keys.latest_block())
        return decode_uint64(data)

    def latest_block(self) -> Block:
        return self.block_by_height(self.latest_block_height())

    def store_block(self, block: Block) -> None:
        height = block.header.height
        self.current_height = height
        encoded = encode_block(block)
        try:
            latest = self.latest_block_height()
        except EntityNotFoundError:
            latest = 0
        self.set_bytes(self.keys.storage(BLOCK_STORE_NAME), self.keys.block_height(height), encoded)
        self.set_bytes(
            self.keys.storage(BLOCK_INDEX_STORE_NAME),
            self.keys.identifier(block.id()),
            encode_uint64(height),
        )
        if height >= latest:
            self.set_bytes(
                self.keys.storage(GLOBAL_STORE_NAME),
                self.keys.latest_block(),
                encode_uint64(height),
            )

    def forked_block_height(self) -> int:
        """Height at which the chain forked from a live network."""
        data = self.get_bytes(self.keys.storage(GLOBAL_STORE_NAME), self.keys.forked_block())
        return decode_uint64(data)

    def store_forked_block_height(self, height: int) -> None:
        self.set_bytes(
            self.keys.storage(GLOBAL_STORE_NAME), self.keys.forked_block(), encode_uint64(height)
        )

    def block_by_height(self, height: int) -> Block:
        data = self.get_bytes(self.keys.storage(BLOCK_STORE_NAME), self.keys.block_height(height))
        return decode_block(data)

    def block_by_id(self, block_id: Identifier) -> Block:
        data = self.get_bytes(
            self.keys.storage(BLOCK_INDEX_STORE_NAME), self.keys.identifier(block_id)
        )
        return self.block_by_height(decode_uint64(data))

    # --- collections and transactions ----------------------------------------

    def collection_by_id(self, collection_id: Identifier) -> LightCollection:
        data = self.get_bytes(
            self.keys.storage(COLLECTION_STORE_NAME), self.keys.identifier(collection_id)
        )
        return decode_collection(data)

    def full_collection_by_id(self, collection_id: Identifier) -> Collection:
        light = self.collection_by_id(collection_id)
        return Collection(transactions=[self.transaction_by_id(t) for t in light.transactions])

    def insert_collection(self, collection: LightCollection) -> None:
        self.set_bytes(
            self.keys.storage(COLLECTION_STORE_NAME),
            self.keys.identifier(collection.id()),
            encode_collection(collection),
        )

    def transaction_by_id(self, tx_id: Identifier) -> TransactionBody:
        data = self.get_bytes(self.keys.storage(TRANSACTION_STORE_NAME), self.keys.identifier(tx_id))
        return decode_transaction(data)

    def insert_transaction(self, tx: TransactionBody) -> None:
        self.set_bytes(
            self.keys.storage(TRANSACTION_STORE_NAME),
            self.keys.identifier(tx.id()),
            encode_transaction(tx),
        )

    def transaction_result_by_id(self, tx_id: Identifier) -> StorableTransactionResult:
        data = self.get_bytes(
            self.keys.storage(TRANSACTION_RESULT_STORE_NAME), self.keys.identifier(tx_id)
        )
        return decode_transaction_result(data)

    def insert_transaction_result(
        self, tx_id: Identifier, result: StorableTransactionResult
    ) -> None:
        self.set_bytes(
            self.keys.storage(TRANSACTION_RESULT_STORE_NAME),
            self.keys.identifier(tx_id),
            encode_transaction_result(result),
        )

    # --- events -------------------------------------------------------------

    def events_by_height(self, height: int, event_type: str = "") -> list[Event]:
        try:
            data = self.get_bytes(self.keys.storage(EVENT_STORE_NAME), self.keys.block_height(height))
        except EntityNotFoundError:
            return []
        return [e for e in decode_events(data) if not event_type or e.type == event_type]

    def insert_events(self, height: int, events: Optional[Iterable[Event]]) -> None:
        self.set_bytes(
            self.keys.storage(EVENT_STORE_NAME),
            self.keys.block_height(height),
            encode_events(events),
        )

    # --- ledger -------------------------------------------------------------

    def insert_execution_snapshot(
        self, height: int, execution_snapshot: Optional[ExecutionSnapshot]
    ) -> None:
        if execution_snapshot is None:
            return
        for register_id, value in execution_snapshot.write_set.items():
            self.set_bytes_with_version(
                self.keys.storage(LEDGER_STORE_NAME),
                str(register_id).encode(),
                value if value is not None else b"",
                height,
            )

    def ledger_by_height(self, height: int) -> _LedgerSnapshot:
        return _LedgerSnapshot(self, height)

    # --- commit -------------------------------------------------------------

    def commit_block(
        self,
        block: Block,
        collections: Optional[Iterable[LightCollection]],
        transactions: Optional[Mapping[Identifier, TransactionBody]],
        transaction_results: Optional[Mapping[Identifier, StorableTransactionResult]],
        execution_snapshot: Optional[ExecutionSnapshot],
        events: Optional[Iterable[Event]],
    ) -> None:
        transactions = transactions or {}
        transaction_results = transaction_results or {}
        if len(transactions) != len(transaction_results):
            raise ValueError(
                f"transactions count ({len(transactions)}) does not match "
                f"result count ({len(transaction_results)})"
            )
        self.store_block(block)
        for collection in collections or []:
            self.insert_collection(collection)
        for tx in transactions.values():
            self.insert_transaction(tx)
        for tx_id, result in transaction_results.items():
            self.insert_transaction_result(tx_id, result)
        self.insert_execution_snapshot(block.header.height, execution_snapshot)
        self.insert_events(block.header.height, events)