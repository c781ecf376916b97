"""
Core — Constants

Shared constants: audit actions, pagination limits, request origins.

@file core/constants.py
"""

AUDIT_ACTION_CREATE = 'CREATE'
AUDIT_ACTION_UPDATE = 'UPDATE'
AUDIT_ACTION_DELETE = 'DELETE'
AUDIT_ACTION_SOFT_DELETE = 'SOFT_DELETE'
AUDIT_ACTION_STATUS_CHANGE = 'STATUS_CHANGE'

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100

# Origin of an operation request. Changes that originate in Stockit are not
# mirrored back to it.
ORIGIN_STOCK_APP = 'stock'
ORIGIN_ADMIN_APP = 'admin'
ORIGIN_STOCKIT = 'stockit'
ORIGIN_SYSTEM = 'system'

STOCKIT_PREFIX = 'X'
