# flowemu

`flowemu` is the storage layer for a local blockchain emulator. It keeps the chain state that
has been finalized: blocks, light collections, transaction bodies, stored transaction results,
emitted events, and ledger registers. Ledger registers are versioned by block height. Pending
state is not stored.

## Installation

```
pip install .
```

To install the test requirements too:

```
pip install .[test]
```

## Storage back ends

All back ends offer the same operations: `latest_block_height`, `latest_block`,
`store_block`, `block_by_id`, `block_by_height`, `commit_block`, `collection_by_id`,
`full_collection_by_id`, `transaction_by_id`, `transaction_result_by_id`,
`ledger_by_height` and `events_by_height`. The `flowemu.store.Store` protocol describes
them.

- `MemoryStore` (`flowemu.memstore`) keeps everything in process memory behind a lock. It
  can be used from several threads.
- `DefaultStore` (`flowemu.store`) stores every record as CBOR bytes in a versioned
  key-value layout. Its own byte-level methods (`get_bytes`, `get_bytes_at_version`,
  `set_bytes`, `set_bytes_with_version`) keep the data in a dictionary. The two stores below
  are subclasses that swap in a different backend. Table names and keys come from
  `DefaultKeyGenerator`, which takes an optional table-name prefix.
- `SQLiteStore` (`flowemu.sqlite_store`) uses an SQLite database. The URL can be
  `":memory:"` (`IN_MEMORY`), an existing file, or an existing directory. For a directory,
  the database file is `emulator.sqlite` inside it. A missing path raises
  `FileNotFoundError`. The store works as a context manager and closes itself on exit.
  - In memory and in directory mode, `create_snapshot(name)`, `load_snapshot(name)` and
    `snapshots()` manage named copies of the database. In other configurations these methods
    raise `EmulatorError`. Loading a snapshot that does not exist raises
    `EntityNotFoundError`.
  - `rollback_to_block_height(height)` deletes everything written above `height` and resets
    the latest height. If `height` is not below the current height, it raises `ValueError`.
  - `set_bytes_with_version_and_height` writes a row with an explicit height.
- `RedisStore` (`flowemu.redis_store`) connects to Redis from a URL, or uses a client you
  pass in. Plain values are stored as hex strings. Versioned values are stored in sorted sets
  scored by version.

`flowemu.factory` provides shortcuts for creating stores:

```python
from flowemu.factory import create_default_storage, new_sqlite_storage, new_redis_storage

store = create_default_storage()            # SQLiteStore in memory
disk = new_sqlite_storage("/var/lib/emu")   # an existing file or directory
cache = new_redis_storage("redis://localhost:6379/0")
```

## Working with a store

```python
from flowemu.errors import EntityNotFoundError
from flowemu.factory import create_default_storage
from flowemu.model import ExecutionSnapshot, RegisterID, genesis

store = create_default_storage()

block = genesis("flow-emulator")
register = RegisterID(owner=b"\x00" * 8, key="foo")
store.commit_block(
    block,
    collections=[],
    transactions={},
    transaction_results={},
    execution_snapshot=ExecutionSnapshot({register: b"bar"}),
    events=[],
)

assert store.latest_block().id() == block.id()
assert store.ledger_by_height(0).get(register) == b"bar"

try:
    store.block_by_height(5)
except EntityNotFoundError:
    print("no block at height 5")
```

`commit_block` raises `ValueError` when the number of transactions differs from the number
of results.

`events_by_height(height, event_type="")` returns the events of a block. If `event_type` is
given, only events of that type are returned. A height with no events gives an empty list.

`ledger_by_height(height)` returns a read view. Its `get(register_id)` gives the newest value
written at or below that height, or `None` if the register was never written.

Looking up an entity that does not exist raises `flowemu.errors.EntityNotFoundError`, which is
a `LookupError`. The other exception classes in `flowemu.errors` describe emulator failures,
for example `BlockNotFoundByHeightError`, `ExpiredTransactionError` and `StorageError`.

## Data model

`flowemu.model` defines these types:

- `Identifier`: 32 bytes, with `from_hex` and `short`.
- `Header`, `Payload`, `CollectionGuarantee` and `Block`, plus `genesis(chain_id)`.
- `LightCollection` and `Collection`.
- `TransactionBody` and `ProposalKey`.
- `Event`.
- `RegisterID`, `ExecutionSnapshot`, and the layered `SnapshotTree`.

Block, collection and transaction IDs are SHA3-256 hashes of their canonical CBOR fields.

## Encoding

Records are stored as canonical CBOR, with timestamps written as RFC 3339 strings.
`flowemu.encoding` provides an encoder and decoder for each record type:
`encode_block`/`decode_block`, `encode_collection`/`decode_collection`,
`encode_transaction`/`decode_transaction`,
`encode_transaction_result`/`decode_transaction_result`, `encode_events`/`decode_events` and
`encode_uint64`/`decode_uint64`. Malformed input raises `ValueError`.

## Results and reporting

`flowemu.results` defines the following:

- `TransactionResult` and `ScriptResult`, each with `succeeded()` and `reverted()`.
- `StorableTransactionResult`, the record that stores keep.
- `TransactionResultDebug`, built by `transaction_invalid_hash_algo` and
  `transaction_invalid_signature`.

`flowemu.reporting.print_transaction_result` and `print_script_result` log a summary of a
result to a standard `logging.Logger`. The summary includes ANSI-coloured prefixes for
events and errors:

```python
import logging
from flowemu.reporting import print_transaction_result

print_transaction_result(logging.getLogger("emulator"), result)
```

## What this package does not do

- It does not execute transactions or scripts, and it does not produce blocks.
- It has no command-line program and no network API.
- It cannot load ledger state from checkpoint files.
- It cannot fetch state from a live network.

It only stores and returns the data that other code hands to it.

## Running the tests

```
pytest
```