from __future__ import annotations


class WmsError(ValueError):
    """Base for every error a workflow operation raises on a failed precondition."""

    code = 'wms_error'
    status_code = 400


class NotFoundError(WmsError):
    code = 'not_found'
    status_code = 404


class InvalidStateError(WmsError):
    code = 'invalid_state'
    status_code = 409


class ValidationError(WmsError):
    code = 'validation_error'
    status_code = 400


class UniquenessConflictError(WmsError):
    code = 'uniqueness_conflict'
    status_code = 409


class PermissionDeniedError(WmsError):
    code = 'permission_denied'
    status_code = 403


GENERIC_SERVER_ERROR_MESSAGE = 'An unexpected error occurred.'


def build_error_envelope(*, code: str, message: str, errors=None, status_code: int) -> dict:
    return {
        'code': code,
        'message': message,
        'errors': errors if errors is not None else [],
        'status': status_code,
    }
