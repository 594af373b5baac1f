"""Logging of transaction and script results."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from flowemu.model import Identifier
from flowemu.results import ScriptResult, TransactionResult

_RED = "31"
_GREEN = "32"
_BOLD = "1"
_FAINT = "2"
_RESET = "\x1b[0m"

_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _colorize(text: str, *codes: str) -> str:
    return f"\x1b[{';'.join(codes)}m{text}{_RESET}"


def _log_prefix(prefix: str, identifier: Identifier, color: str) -> str:
    label = _colorize(prefix, _BOLD, color)
    short_id = _colorize(f"[{str(identifier)[:6]}]", _FAINT)
    return f"{label} {short_id}"


def _fields(meta: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    return {
        (f"meta_{key}" if key in _RESERVED else key): value
        for key, value in (meta or {}).items()
    }


def print_script_result(logger: logging.Logger, result: ScriptResult) -> None:
    """Log the outcome of a script execution."""
    fields = {
        "scriptID": str(result.script_id),
        "computationUsed": result.computation_used,
        "memoryEstimate": result.memory_estimate,
    }
    if result.succeeded():
        logger.debug("⭐  Script executed", extra=fields)
    else:
        logger.warning("❗  Script reverted", extra=fields)
        logger.warning("%s %s", _log_prefix("ERR", result.script_id, _RED), result.error)


def print_transaction_result(logger: logging.Logger, result: TransactionResult) -> None:
    """Log the outcome of a transaction, its events and any debug details."""
    fields = {
        "txID": str(result.transaction_id),
        "computationUsed": result.computation_used,
        "memoryEstimate": result.memory_estimate,
    }
    if result.succeeded():
        logger.debug("⭐  Transaction executed", extra=fields)
    else:
        logger.warning("❗  Transaction reverted", extra=fields)

    for event in result.events:
        logger.debug("%s %s", _log_prefix("EVT", result.transaction_id, _GREEN), event)

    if result.succeeded():
        return

    logger.warning("%s %s", _log_prefix("ERR", result.transaction_id, _RED), result.error)
    if result.debug is not None:
        logger.debug(
            "%s %s",
            "❗  Transaction Signature Error",
            result.debug.message,
            extra=_fields(result.debug.meta),
        )