"""
Error taxonomy for the world service

Business failures (unknown ids, bad quantities, insufficient funds) are
surfaced to callers as structured results where the operation allows it;
cache failures are soft and never reach callers.
"""

from enum import Enum
from typing import Optional


class ErrorType(str, Enum):
    """Error classification types."""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    TRANSACTION_FAILED = "transaction_failed"
    CACHE_UNAVAILABLE = "cache_unavailable"


class WorldServiceError(Exception):
    """Base class for world service errors"""

    error_type: ErrorType = ErrorType.TRANSACTION_FAILED

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        response = {
            'error': {
                'type': self.error_type.value,
                'message': self.message,
            }
        }
        if self.details:
            response['error']['details'] = self.details
        return response


class NotFoundError(WorldServiceError):
    error_type = ErrorType.NOT_FOUND


class TerritoryNotFoundError(NotFoundError):
    def __init__(self, territory_id: str):
        super().__init__(f"Territory {territory_id} not found", {"territory_id": territory_id})


class ItemNotFoundError(NotFoundError):
    def __init__(self, item_id: str):
        super().__init__("Item not found", {"item_id": item_id})


class PlayerNotFoundError(NotFoundError):
    def __init__(self, player_id: str):
        super().__init__("Player not found", {"player_id": player_id})


class ValidationError(WorldServiceError):
    error_type = ErrorType.VALIDATION


class InvalidQuantityError(ValidationError):
    def __init__(self, quantity: int):
        super().__init__("Invalid quantity", {"quantity": quantity})


class InsufficientFundsError(WorldServiceError):
    error_type = ErrorType.INSUFFICIENT_FUNDS

    def __init__(self, balance: float, required: float):
        super().__init__("Insufficient funds", {"balance": balance, "required": required})


class TransactionFailedError(WorldServiceError):
    """Wraps ledger and persistence failures"""

    error_type = ErrorType.TRANSACTION_FAILED

    def __init__(self, cause: Optional[Exception] = None):
        super().__init__("Transaction failed", {"cause": str(cause)} if cause else None)
        self.cause = cause


class CacheUnavailableError(WorldServiceError):
    """Raised by the cache when Redis cannot be reached; always handled softly"""

    error_type = ErrorType.CACHE_UNAVAILABLE
