"""An in-memory implementation of the chain state store."""

from __future__ import annotations

import threading
from typing import Iterable, Mapping, Optional

from flowemu.errors import EntityNotFoundError
from flowemu.model import (
    Block,
    Collection,
    Event,
    ExecutionSnapshot,
    Identifier,
    LightCollection,
    SnapshotTree,
    TransactionBody,
)
from flowemu.results import StorableTransactionResult


class MemoryStore:
    """Keeps all chain state in process memory. Safe for use from several threads."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._block_id_to_height: dict[Identifier, int] = {}
        self._blocks: dict[int, Block] = {}
        self._collections: dict[Identifier, LightCollection] = {}
        self._transactions: dict[Identifier, TransactionBody] = {}
        self._transaction_results: dict[Identifier, StorableTransactionResult] = {}
        self._ledger: dict[int, SnapshotTree] = {}
        self._events_by_height: dict[int, list[Event]] = {}
        self._block_height = 0
        self.running = False

    def start(self) -> None:
        """Mark the store as running."""
        with self._lock:
            self.running = True

    def stop(self) -> None:
        """Mark the store as stopped."""
        with self._lock:
            self.running = False

    # --- blocks -------------------------------------------------------------

    def latest_block_height(self) -> int:
        return self.latest_block().header.height

    def latest_block(self) -> Block:
        with self._lock:
            try:
                return self._blocks[self._block_height]
            except KeyError:
                raise EntityNotFoundError() from None

    def store_block(self, block: Block) -> None:
        with self._lock:
            self._store_block(block)

    def _store_block(self, block: Block) -> None:
        height = block.header.height
        self._blocks[height] = block
        self._block_id_to_height[block.id()] = height
        if height > self._block_height:
            self._block_height = height

    def block_by_id(self, block_id: Identifier) -> Block:
        with self._lock:
            try:
                height = self._block_id_to_height[block_id]
                return self._blocks[height]
            except KeyError:
                raise EntityNotFoundError() from None

    def block_by_height(self, height: int) -> Block:
        with self._lock:
            try:
                return self._blocks[height]
            except KeyError:
                raise EntityNotFoundError() from None

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
        with self._lock:
            if len(transactions) != len(transaction_results):
                raise ValueError(
                    f"transactions count ({len(transactions)}) does not match "
                    f"result count ({len(transaction_results)})"
                )
            self._store_block(block)
            for collection in collections or []:
                self._collections[collection.id()] = collection
            for tx in transactions.values():
                self._transactions[tx.id()] = tx
            for tx_id, result in transaction_results.items():
                self._transaction_results[tx_id] = result
            self._insert_execution_snapshot(block.header.height, execution_snapshot)
            self._insert_events(block.header.height, events)

    # --- collections and transactions ----------------------------------------

    def collection_by_id(self, collection_id: Identifier) -> LightCollection:
        with self._lock:
            try:
                return self._collections[collection_id]
            except KeyError:
                raise EntityNotFoundError() from None

    def full_collection_by_id(self, collection_id: Identifier) -> Collection:
        with self._lock:
            try:
                light = self._collections[collection_id]
                txs = [self._transactions[tx_id] for tx_id in light.transactions]
            except KeyError:
                raise EntityNotFoundError() from None
            return Collection(transactions=txs)

    def transaction_by_id(self, tx_id: Identifier) -> TransactionBody:
        with self._lock:
            try:
                return self._transactions[tx_id]
            except KeyError:
                raise EntityNotFoundError() from None

    def transaction_result_by_id(self, tx_id: Identifier) -> StorableTransactionResult:
        with self._lock:
            try:
                return self._transaction_results[tx_id]
            except KeyError:
                raise EntityNotFoundError() from None

    # --- ledger and events ---------------------------------------------------

    def ledger_by_height(self, height: int) -> SnapshotTree:
        with self._lock:
            return self._ledger.get(height, SnapshotTree())

    def events_by_height(self, height: int, event_type: str = "") -> list[Event]:
        with self._lock:
            all_events = self._events_by_height.get(height, [])
            return [e for e in all_events if not event_type or e.type == event_type]

    def _insert_execution_snapshot(
        self, height: int, execution_snapshot: Optional[ExecutionSnapshot]
    ) -> None:
        previous = self._ledger.get(height - 1, SnapshotTree())
        self._ledger[height] = previous.append(execution_snapshot)

    def _insert_events(self, height: int, events: Optional[Iterable[Event]]) -> None:
        existing = self._events_by_height.get(height)
        if existing is None:
            self._events_by_height[height] = list(events or [])
        else:
            existing.extend(events or [])