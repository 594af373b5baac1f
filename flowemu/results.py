"""Results of transaction and script execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from flowemu.model import ZERO_ID, Event, Identifier, TransactionBody


@dataclass
class StorableTransactionResult:
    """Transaction result in the form kept by a store."""

    error_code: int = 0
    error_message: str = ""
    logs: list[str] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    block_id: Identifier = ZERO_ID
    block_height: int = 0


@dataclass
class TransactionResultDebug:
    """Details about an unsuccessful transaction."""

    message: str = ""
    meta: Optional[dict[str, Any]] = None


@dataclass
class TransactionResult:
    """The result of executing a transaction."""

    transaction_id: Identifier = ZERO_ID
    computation_used: int = 0
    memory_estimate: int = 0
    error: Optional[BaseException] = None
    logs: list[str] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    debug: Optional[TransactionResultDebug] = None

    def succeeded(self) -> bool:
        return self.error is None

    def reverted(self) -> bool:
        return not self.succeeded()


@dataclass
class ScriptResult:
    """The result of executing a script."""

    script_id: Identifier = ZERO_ID
    value: Any = None
    error: Optional[BaseException] = None
    logs: list[str] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    computation_used: int = 0
    memory_estimate: int = 0

    def succeeded(self) -> bool:
        return self.error is None

    def reverted(self) -> bool:
        return not self.succeeded()


@dataclass
class AccountPublicKey:
    """A public key registered on an account."""

    index: int = 0
    public_key: bytes = b""
    sign_algo: str = ""
    hash_algo: str = ""
    seq_number: int = 0
    weight: int = 0
    revoked: bool = False


def transaction_invalid_hash_algo(
    key: AccountPublicKey, address: str, invalid_algo: str
) -> TransactionResultDebug:
    """Debug details for a signature made with the wrong hashing algorithm."""
    return TransactionResultDebug(
        message=(
            f"invalid hashing algorithm signature: public key {key.index} on account "
            f"{address} does not have a valid signature: key requires {key.hash_algo} "
            f"hashing algorithm, but {invalid_algo} was used"
        ),
        meta=None,
    )


def transaction_invalid_signature(tx: TransactionBody) -> TransactionResultDebug:
    """Debug details for a transaction with an invalid signature."""
    return TransactionResultDebug(
        message="",
        meta={
            "payer": str(tx.payer),
            "proposer": str(tx.proposal_key.address),
            "proposerKeyIndex": str(tx.proposal_key.key_index),
            "authorizers": "[" + " ".join(str(a) for a in tx.authorizers) + "]",
            "gasLimit": str(tx.gas_limit),
        },
    )