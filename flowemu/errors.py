"""Error types raised by the emulator and its storage layer."""

from __future__ import annotations

from typing import Iterable


class EmulatorError(Exception):
    """Base class for every error raised by the emulator."""


class NotFoundError(EmulatorError, LookupError):
    """An entity could not be found."""


class EntityNotFoundError(NotFoundError):
    """Raised by a store when the requested entity does not exist."""

    def __init__(self, message: str = "could not find entity") -> None:
        super().__init__(message)


class InvalidArgumentError(EmulatorError, ValueError):
    """A caller supplied an invalid argument."""

    def __init__(self, msg: str) -> None:
        self.msg = msg
        super().__init__(f"Invalid argument error: {msg}")


class InternalError(EmulatorError):
    """An unexpected internal failure."""

    def __init__(self, msg: str) -> None:
        self.msg = msg
        super().__init__(f"Internal error: {msg}")


class BlockNotFoundError(NotFoundError):
    """A block could not be found."""


class BlockNotFoundByHeightError(BlockNotFoundError):
    """No block exists at the given height."""

    def __init__(self, height: int) -> None:
        self.height = height
        super().__init__(f"could not find block at height {height}")


class BlockNotFoundByIDError(BlockNotFoundError):
    """No block exists with the given ID."""

    def __init__(self, block_id) -> None:
        self.id = block_id
        super().__init__(f"could not find block with ID {block_id}")


class CollectionNotFoundError(NotFoundError):
    """No collection exists with the given ID."""

    def __init__(self, collection_id) -> None:
        self.id = collection_id
        super().__init__(f"could not find collection with ID {collection_id}")


class TransactionNotFoundError(NotFoundError):
    """No transaction exists with the given ID."""

    def __init__(self, tx_id) -> None:
        self.id = tx_id
        super().__init__(f"could not find transaction with ID {tx_id}")


class AccountNotFoundError(NotFoundError):
    """No account exists at the given address."""

    def __init__(self, address) -> None:
        self.address = address
        super().__init__(f"could not find account with address {address}")


class TransactionValidationError(EmulatorError):
    """A submitted transaction is invalid."""


class DuplicateTransactionError(TransactionValidationError):
    """The transaction has already been submitted."""

    def __init__(self, tx_id) -> None:
        self.tx_id = tx_id
        super().__init__(f"transaction with ID {tx_id} has already been submitted")


class IncompleteTransactionError(TransactionValidationError):
    """The transaction is missing required fields."""

    def __init__(self, missing_fields: Iterable[str]) -> None:
        self.missing_fields = list(missing_fields)
        listed = " ".join(self.missing_fields)
        super().__init__(f"transaction is missing required fields: [{listed}]")


class ExpiredTransactionError(TransactionValidationError):
    """The transaction's reference block is too old."""

    def __init__(self, ref_height: int, final_height: int) -> None:
        self.ref_height = ref_height
        self.final_height = final_height
        super().__init__(
            f"transaction is expired: ref_height={ref_height} final_height={final_height}"
        )


class InvalidTransactionScriptError(TransactionValidationError):
    """The transaction's script could not be parsed."""

    def __init__(self, parser_error: BaseException) -> None:
        self.parser_error = parser_error
        super().__init__(f"failed to parse transaction Cadence script: {parser_error}")
        self.__cause__ = parser_error


class InvalidTransactionGasLimitError(TransactionValidationError):
    """The transaction's gas limit exceeds the maximum."""

    def __init__(self, maximum: int, actual: int) -> None:
        self.maximum = maximum
        self.actual = actual
        super().__init__(
            f"transaction gas limit ({actual}) exceeds the maximum gas limit ({maximum})"
        )


class InvalidStateVersionError(EmulatorError):
    """A state version hash is invalid."""

    def __init__(self, version: bytes) -> None:
        self.version = bytes(version)
        super().__init__(
            f"execution state with version hash {self.version.hex()} is invalid"
        )


class PendingBlockCommitBeforeExecutionError(EmulatorError):
    """The pending block cannot be committed before it is executed."""

    def __init__(self, block_id) -> None:
        self.block_id = block_id
        super().__init__(
            f"pending block with ID {block_id} cannot be committed before execution"
        )


class PendingBlockMidExecutionError(EmulatorError):
    """The pending block is currently being executed."""

    def __init__(self, block_id) -> None:
        self.block_id = block_id
        super().__init__(f"pending block with ID {block_id} is currently being executed")


class PendingBlockTransactionsExhaustedError(EmulatorError):
    """The pending block has no more transactions to execute."""

    def __init__(self, block_id) -> None:
        self.block_id = block_id
        super().__init__(
            f"pending block with ID {block_id} contains no more transactions to execute"
        )


class StorageError(EmulatorError):
    """The storage provider failed."""

    def __init__(self, inner: BaseException) -> None:
        self.inner = inner
        super().__init__(f"storage failure: {inner}")
        self.__cause__ = inner


class ExecutionError(EmulatorError):
    """A transaction failed to execute."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"execution error code {code}: {message}")


class FVMError(EmulatorError):
    """Wraps an error reported by the virtual machine."""

    def __init__(self, flow_error: BaseException) -> None:
        self.flow_error = flow_error
        super().__init__(str(flow_error))
        self.__cause__ = flow_error