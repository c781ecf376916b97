"""
Core — Exception Handling

Custom exceptions and DRF exception handler for consistent API
error envelopes.

@file core/exceptions.py
"""

import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('stockroom')


def normalize_errors(errors) -> dict[str, list[str]]:
    """Coerce a str / list / dict of messages into {field: [message, ...]}."""
    if errors is None:
        return {}
    if isinstance(errors, str):
        return {'detail': [errors]}
    if isinstance(errors, (list, tuple)):
        return {'detail': [str(e) for e in errors]}
    normalized = {}
    for field, messages in errors.items():
        if isinstance(messages, (list, tuple)):
            normalized[str(field)] = [str(m) for m in messages]
        else:
            normalized[str(field)] = [str(messages)]
    return normalized


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class BusinessRuleViolation(APIException):
    """Raised when a business rule is violated at the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Business rule violation.'
    default_code = 'BUSINESS_RULE_VIOLATION'


class PackageValidationError(BusinessRuleViolation):
    """
    Quantity / location constraint violated. User-correctable; carries
    field-keyed messages, e.g. {'quantity': ['...']}.
    """
    default_detail = 'Package validation failed.'
    default_code = 'PACKAGE_VALIDATION_ERROR'

    def __init__(self, errors=None, code=None):
        self.errors = normalize_errors(errors)
        super().__init__(detail=self.errors or None, code=code)


class NegativeQuantityError(PackageValidationError):
    """A derived counter would drop below zero. Always a bug or a race."""
    default_detail = 'Quantity cannot be negative.'
    default_code = 'NEGATIVE_QUANTITY'


class InsufficientLocationQuantity(PackageValidationError):
    """The source location does not hold enough of the package."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient quantity at location.'
    default_code = 'INSUFFICIENT_LOCATION_QUANTITY'


class BadOrMissingField(PackageValidationError):
    default_code = 'BAD_OR_MISSING_FIELD'

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__({field: message or f'{field} is missing or invalid.'})


class InvalidOperation(BusinessRuleViolation):
    """The operation does not apply to this package (e.g. packing into a non-container)."""
    default_detail = 'Invalid operation.'
    default_code = 'INVALID_OPERATION'


class InvalidStateTransition(InvalidOperation):
    """Raised when a state machine transition is not allowed."""
    default_detail = 'Invalid state transition.'
    default_code = 'INVALID_STATE_TRANSITION'


class InventorizedPackageError(APIException):
    """Destroying a package that is tracked in the inventory ledger."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Package is inventorized and cannot be deleted.'
    default_code = 'INVENTORIZED_PACKAGE'


class ExternalSyncError(APIException):
    """Stockit call failed or timed out. Never rolls back local state."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'External inventory sync failed.'
    default_code = 'EXTERNAL_SYNC_ERROR'


class ResourceNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'RESOURCE_NOT_FOUND'


# ---------------------------------------------------------------------------
# Standard exception handler
# ---------------------------------------------------------------------------

def standard_exception_handler(exc, context):
    """
    Wraps every error response in the standard envelope:
      { "success": false, "errors": {...}, "code": "ERROR_CODE" }
    """
    if isinstance(exc, Http404):
        exc = ResourceNotFoundError()
    elif isinstance(exc, PermissionDenied):
        exc = APIException(detail='Permission denied.', code='PERMISSION_DENIED')
        exc.status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, ValidationError):
        data = {
            'success': False,
            'errors': exc.message_dict if hasattr(exc, 'message_dict') else {'detail': exc.messages},
            'code': 'VALIDATION_ERROR',
        }
        return Response(data, status=status.HTTP_400_BAD_REQUEST)

    response = exception_handler(exc, context)

    if response is not None:
        errors = {}
        code = getattr(exc, 'default_code', 'ERROR')

        if isinstance(response.data, dict):
            errors = response.data
            code = response.data.pop('code', code) if 'code' in response.data else code
        elif isinstance(response.data, list):
            errors = {'detail': response.data}
        else:
            errors = {'detail': [str(response.data)]}

        response.data = {
            'success': False,
            'errors': errors,
            'code': code,
        }

    if response is None:
        logger.exception('Unhandled exception in view: %s', exc)
        return Response(
            {'success': False, 'errors': {'detail': ['Internal server error.']}, 'code': 'INTERNAL_ERROR'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return response
