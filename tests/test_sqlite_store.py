import os

import pytest

from flowemu.errors import EmulatorError, EntityNotFoundError
from flowemu.model import (
    Block,
    Collection,
    Event,
    ExecutionSnapshot,
    Header,
    Identifier,
    ProposalKey,
    RegisterID,
    TransactionBody,
)
from flowemu.results import StorableTransactionResult
from flowemu.sqlite_store import IN_MEMORY, SQLiteStore

OWNER = bytes.fromhex("0000000000000001")


def _tx(seed: int) -> TransactionBody:
    return TransactionBody(
        reference_block_id=Identifier(bytes([seed]) * 32),
        script=f"transaction {{ execute {{ log({seed}) }} }}".encode(),
        arguments=[b"arg"],
        gas_limit=9999,
        proposal_key=ProposalKey(address="01", key_index=seed, sequence_number=seed),
        payer="01",
        authorizers=["01"],
        payload_signatures=[b"sig"],
        envelope_signatures=[b"env"],
    )


def _full_collection(n: int) -> Collection:
    return Collection(transactions=[_tx(i + 1) for i in range(n)])


def _event(i: int, event_type: str = "flow.Test") -> Event:
    return Event(
        type=event_type,
        transaction_id=Identifier(bytes([i + 1]) * 32),
        transaction_index=i,
        event_index=i * 2,
        payload=f"payload-{i}".encode(),
    )


def _result() -> StorableTransactionResult:
    return StorableTransactionResult(
        error_code=42,
        error_message="foo",
        logs=["a", "b", "c"],
        events=[_event(0), _event(1)],
    )


@pytest.fixture
def store(tmp_path):
    path = tmp_path / "test.sqlite"
    path.touch()
    s = SQLiteStore(str(path))
    yield s
    s.close()


def test_new_and_invalid_location(tmp_path):
    path = tmp_path / "test.sqlite"
    path.touch()
    SQLiteStore(str(path)).close()
    with pytest.raises(FileNotFoundError) as info:
        SQLiteStore("/invalidLocation")
    message = str(info.value).lower()
    assert "unable to open database file: out of memory" not in message
    assert "no such file or directory" in message


def test_directory_url_uses_database_file(tmp_path):
    with SQLiteStore(str(tmp_path)) as s:
        s.store_block(Block(header=Header(height=1)))
        assert s.latest_block_height() == 1
    assert (tmp_path / "emulator.sqlite").exists()


def test_blocks(store):
    block1 = Block(header=Header(height=1))
    block2 = Block(header=Header(height=2))

    with pytest.raises(EntityNotFoundError):
        store.block_by_id(Identifier(b"\x09" * 32))
    with pytest.raises(EntityNotFoundError):
        store.block_by_height(1)
    with pytest.raises(EntityNotFoundError):
        store.latest_block()

    store.store_block(block1)
    store.store_block(block1)
    assert store.block_by_height(1) == block1
    assert store.block_by_id(block1.id()) == block1
    assert store.latest_block() == block1

    store.store_block(block2)
    assert store.latest_block() == block2


def test_collections(store):
    col = _full_collection(3)
    with pytest.raises(EntityNotFoundError):
        store.collection_by_id(col.id())
    store.insert_collection(col.light())
    assert store.collection_by_id(col.id()) == col.light()


def test_transactions(store):
    tx = _tx(7)
    with pytest.raises(EntityNotFoundError):
        store.transaction_by_id(tx.id())
    store.insert_transaction(tx)
    assert store.transaction_by_id(tx.id()).id() == tx.id()


def test_full_collection(store):
    col = _full_collection(3)
    with pytest.raises(EntityNotFoundError):
        store.collection_by_id(col.id())
    with pytest.raises(EntityNotFoundError):
        store.full_collection_by_id(col.id())
    store.insert_collection(col.light())
    for tx in col.transactions:
        store.insert_transaction(tx)
    assert store.full_collection_by_id(col.id()) == col


def test_transaction_results(store):
    result = _result()
    with pytest.raises(EntityNotFoundError):
        store.transaction_result_by_id(Identifier(b"\x01" * 32))
    tx_id = Identifier(b"\x02" * 32)
    store.insert_transaction_result(tx_id, result)
    assert store.transaction_result_by_id(tx_id) == result


def test_ledger_get_set(store):
    register = RegisterID(owner=OWNER, key="foo")
    snapshot = ExecutionSnapshot(write_set={register: b"bar"})
    store.insert_execution_snapshot(1, snapshot)
    assert store.ledger_by_height(1).get(register) == b"bar"


def test_ledger_versioning(store):
    total_blocks = 10
    snapshots = []
    for i in range(2, total_blocks + 2):
        write_set = {
            RegisterID(owner=OWNER, key=str(j)): bytes([i - 1])
            for j in range(i - 1, i + 2)
        }
        snapshots.append(ExecutionSnapshot(write_set=write_set))
    assert len(snapshots) == total_blocks

    for i, snapshot in enumerate(snapshots):
        store.insert_execution_snapshot(i + 1, snapshot)

    ledger = store.ledger_by_height(1)
    for i in range(1, 4):
        assert ledger.get(RegisterID(owner=OWNER, key=str(i))) == bytes([1])

    for block in range(2, total_blocks):
        ledger = store.ledger_by_height(block)
        for i in range(1, block):
            assert ledger.get(RegisterID(owner=OWNER, key=str(i))) == bytes([i])
        for i in range(block, block + 3):
            assert ledger.get(RegisterID(owner=OWNER, key=str(i))) == bytes([block])


def test_insert_events(store):
    events = [_event(0)]
    store.insert_events(1, events)
    assert store.events_by_height(1, "") == events


def test_events_by_height(store):
    all_events, events_a, events_b = [], [], []
    for i in range(10):
        event = _event(i, "A" if i % 2 == 0 else "B")
        (events_a if i % 2 == 0 else events_b).append(event)
        all_events.append(event)

    store.insert_events(1, all_events)
    store.insert_events(2, None)

    assert store.events_by_height(1, "") == all_events
    assert store.events_by_height(2, "") == []
    assert store.events_by_height(3, "") == []
    assert store.events_by_height(1, "A") == events_a
    assert store.events_by_height(1, "B") == events_b


def test_rollback_to_block_height(store):
    register = RegisterID(owner=OWNER, key="k")
    for height in (1, 2, 3):
        store.store_block(Block(header=Header(height=height)))
    store.insert_execution_snapshot(3, ExecutionSnapshot(write_set={register: b"v"}))
    assert store.ledger_by_height(3).get(register) == b"v"

    store.rollback_to_block_height(1)

    assert store.latest_block_height() == 1
    assert store.block_by_height(1).header.height == 1
    with pytest.raises(EntityNotFoundError):
        store.block_by_height(2)
    assert store.ledger_by_height(3).get(register) is None


def test_rollback_requires_lower_height(store):
    with pytest.raises(ValueError):
        store.rollback_to_block_height(0)


def test_snapshots_in_directory(tmp_path):
    block1 = Block(header=Header(height=1))
    block2 = Block(header=Header(height=2))
    with SQLiteStore(str(tmp_path)) as s:
        assert s.support_snapshots_with_current_config() is True
        s.store_block(block1)
        s.create_snapshot("first")
        s.store_block(block2)
        assert s.snapshots() == ["first"]
        assert os.path.exists(tmp_path / "snapshot_first")

        s.load_snapshot("first")
        assert s.latest_block() == block1
        with pytest.raises(EntityNotFoundError):
            s.block_by_height(2)

        with pytest.raises(EntityNotFoundError):
            s.load_snapshot("missing")


def test_snapshots_unsupported_for_single_file(store):
    assert store.support_snapshots_with_current_config() is False
    with pytest.raises(EmulatorError):
        store.snapshots()
    with pytest.raises(EmulatorError):
        store.create_snapshot("x")


def test_in_memory_snapshots():
    with SQLiteStore(IN_MEMORY) as s:
        assert s.support_snapshots_with_current_config() is True
        assert s.snapshots() == []
        with pytest.raises(EntityNotFoundError):
            s.load_snapshot("missing")


def test_global_store_ignores_height(store):
    store.store_block(Block(header=Header(height=5)))
    store.set_bytes("global", b"flag", b"\x01")
    store.store_block(Block(header=Header(height=6)))
    store.rollback_to_block_height(5)
    assert store.get_bytes("global", b"flag") == b"\x01"


def test_set_bytes_with_version_and_height(store):
    store.set_bytes_with_version_and_height("ledger", b"key", b"old", 1, 0)
    store.set_bytes_with_version_and_height("ledger", b"key", b"new", 4, 0)
    assert store.get_bytes_at_version("ledger", b"key", 3) == b"old"
    assert store.get_bytes_at_version("ledger", b"key", 9) == b"new"
    with pytest.raises(EntityNotFoundError):
        store.get_bytes_at_version("ledger", b"key", 0)