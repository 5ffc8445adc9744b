from .config import config
from .logging_setup import logger, get_logger
from .exceptions import (
    LedgerError,
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    PartialCommitError,
    ConflictError,
    StoreUnavailableError,
    NotAuthenticatedError
)

__version__ = '0.1.0'

__all__ = [
    'config',
    'logger',
    'get_logger',
    'LedgerError',
    'ValidationError',
    'NotFoundError',
    'InsufficientStockError',
    'PartialCommitError',
    'ConflictError',
    'StoreUnavailableError',
    'NotAuthenticatedError'
]
