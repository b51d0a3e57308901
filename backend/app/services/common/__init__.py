from .errors import (
    ServiceError, ValidationError, NotFoundError, ConflictError,
    ExternalUnavailable, TransactionIntegrityError,
)
from .result import Ok, Err, Result
