import logging

import pytest

from flowemu.model import Event, Identifier
from flowemu.reporting import print_script_result, print_transaction_result
from flowemu.results import ScriptResult, TransactionResult, TransactionResultDebug

ID = Identifier(bytes(range(32)))


@pytest.fixture
def logger(caplog):
    caplog.set_level(logging.DEBUG, logger="flowemu.test")
    return logging.getLogger("flowemu.test")


def test_script_success_logs_one_debug_record(logger, caplog):
    result = ScriptResult(script_id=ID, computation_used=20, memory_estimate=2048)
    print_script_result(logger, result)
    assert len(caplog.records) == 1
    record = caplog.records[0]
    assert record.levelno == logging.DEBUG
    assert record.getMessage() == "⭐  Script executed"
    assert record.scriptID == str(ID)
    assert record.computationUsed == 20
    assert record.memoryEstimate == 2048


def test_script_failure_logs_error(logger, caplog):
    result = ScriptResult(script_id=ID, error=RuntimeError("boom"))
    print_script_result(logger, result)
    assert [r.levelno for r in caplog.records] == [logging.WARNING, logging.WARNING]
    assert caplog.records[0].getMessage() == "❗  Script reverted"
    message = caplog.records[1].getMessage()
    assert "ERR" in message
    assert f"[{str(ID)[:6]}]" in message
    assert message.endswith(" boom")


def test_error_prefix_is_bold_red(logger, caplog):
    print_script_result(logger, ScriptResult(script_id=ID, error=RuntimeError("x")))
    assert caplog.records[1].getMessage().startswith("\x1b[1;31mERR\x1b[0m")


def test_transaction_success_logs_events(logger, caplog):
    events = [Event(type="A.Counting.CountIncremented"), Event(type="A.Other")]
    result = TransactionResult(transaction_id=ID, events=events)
    print_transaction_result(logger, result)
    assert len(caplog.records) == 1 + len(events)
    assert caplog.records[0].getMessage() == "⭐  Transaction executed"
    assert caplog.records[0].txID == str(ID)
    for record, event in zip(caplog.records[1:], events):
        assert record.levelno == logging.DEBUG
        assert "EVT" in record.getMessage()
        assert event.type in record.getMessage()


def test_transaction_failure_without_debug(logger, caplog):
    result = TransactionResult(transaction_id=ID, error=ValueError("revert!"))
    print_transaction_result(logger, result)
    assert [r.levelno for r in caplog.records] == [logging.WARNING, logging.WARNING]
    assert caplog.records[0].getMessage() == "❗  Transaction reverted"
    assert caplog.records[1].getMessage().endswith(" revert!")


def test_transaction_failure_with_debug_meta(logger, caplog):
    debug = TransactionResultDebug(message="details", meta={"payer": "01", "message": "m"})
    result = TransactionResult(transaction_id=ID, error=ValueError("bad sig"), debug=debug)
    print_transaction_result(logger, result)
    assert len(caplog.records) == 3
    last = caplog.records[-1]
    assert last.levelno == logging.DEBUG
    assert last.getMessage() == "❗  Transaction Signature Error details"
    assert last.payer == "01"
    assert last.meta_message == "m"


def test_debug_ignored_on_success(logger, caplog):
    debug = TransactionResultDebug(message="details")
    print_transaction_result(logger, TransactionResult(transaction_id=ID, debug=debug))
    assert len(caplog.records) == 1
    assert caplog.records[0].getMessage() == "⭐  Transaction executed"