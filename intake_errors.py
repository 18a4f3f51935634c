"""
Error types raised by the intake batch workflow and the SKU allocator.

Every error carries a stable ``code`` for API clients and the HTTP status the
routes answer with.
"""


class IntakeError(ValueError):
    """Intake operation failed"""
    code = 'INTAKE_ERROR'
    status_code = 400

    def __init__(self, message=None, **details):
        super().__init__(message or self.__class__.__doc__)
        self.details = details

    def to_dict(self):
        payload = {'error': str(self), 'code': self.code}
        payload.update(self.details)
        return payload


class InvalidIsbnError(IntakeError):
    """Invalid ISBN format. Use 10 or 13 digits."""
    code = 'INVALID_ISBN'
    status_code = 400


class DuplicateInBatchError(IntakeError):
    """Duplicate in batch"""
    code = 'DUPLICATE_IN_BATCH'
    status_code = 409


class BatchNotFoundError(IntakeError):
    """Batch not found"""
    code = 'BATCH_NOT_FOUND'
    status_code = 404


class ItemNotFoundError(IntakeError):
    """Item not found in batch"""
    code = 'ITEM_NOT_FOUND'
    status_code = 404


class BatchNotOpenError(IntakeError):
    """Batch is not open"""
    code = 'BATCH_NOT_OPEN'
    status_code = 409


class BatchFullError(IntakeError):
    """Batch is full"""
    code = 'BATCH_FULL'
    status_code = 409


class ValidationError(IntakeError):
    """Validation failed"""
    code = 'VALIDATION_ERROR'
    status_code = 400


class CounterConflict(IntakeError):
    """SKU counter conflict, please try again."""
    code = 'COUNTER_CONFLICT'
    status_code = 409


class ItemCommitError(IntakeError):
    """Item could not be committed"""
    code = 'ITEM_COMMIT_ERROR'
    status_code = 500
