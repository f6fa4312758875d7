"""Exceptions raised by the FarmTrack stores and repository.

Flask handlers in app.py turn these into JSON responses using ``status_code``.
"""


class FarmTrackError(Exception):
    """Base exception for all FarmTrack errors."""

    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        data = {'error': self.message}
        if self.details:
            data['details'] = self.details
        return data


class ValidationError(FarmTrackError):
    """Raised when form input fails local validation.

    Attributes:
        errors: mapping of field name to a human readable message
    """

    status_code = 400

    def __init__(self, errors, message='Validation failed'):
        super().__init__(message, details={'fields': errors})
        self.errors = errors

    def to_dict(self):
        return {'error': self.message, 'errors': self.errors}


class RecordNotFound(FarmTrackError):
    status_code = 404


class AuthenticationError(FarmTrackError):
    status_code = 401


class RemoteStoreError(FarmTrackError):
    """Base class for failures talking to the remote store."""

    status_code = 502
    retryable = False


class RemoteUnavailable(RemoteStoreError):
    """Network error, timeout or 5xx from the remote store."""

    status_code = 503
    retryable = True


class RemoteNotConfigured(RemoteUnavailable):
    """The remote store URL/key are missing or fail the configuration check."""

    retryable = False

    def __init__(self, message='Remote store is not configured', details=None):
        super().__init__(message, details)


class RemoteRejected(RemoteStoreError):
    """The remote store answered with a 4xx (constraint or permission failure)."""

    def __init__(self, message, status=None, code=None):
        super().__init__(message, details={'status': status, 'code': code})
        self.status = status
        self.code = code


class RemoteConflict(RemoteRejected):
    """409 from the remote store, usually a duplicate primary key."""


class FarmerResolutionError(RemoteStoreError):
    """Every strategy of the farmer-id ladder failed.

    Attributes:
        diagnostics: one line per attempted strategy, in order
    """

    def __init__(self, diagnostics):
        super().__init__('Could not resolve a farmer profile', details={'diagnostics': diagnostics})
        self.diagnostics = diagnostics
