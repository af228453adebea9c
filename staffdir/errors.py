"""
Error taxonomy shared by the store, the services and the API layer.
"""


class PortalError(Exception):
    """Base class; ``str(err)`` is safe to show to the user."""
    status_code = 500


class NotFoundError(PortalError):
    """A keyed fetch or update matched no row."""
    status_code = 404


class AccessDeniedError(PortalError):
    """The viewer's roles do not allow the operation."""
    status_code = 403


class AuthenticationError(PortalError):
    """Invalid or inactive credentials."""
    status_code = 401


class TransientNetworkError(PortalError):
    """The data store could not be reached. Not retried."""
    status_code = 503


class ValidationError(PortalError, ValueError):
    """Malformed input, e.g. a rule without its composite key."""
    status_code = 400


class StoreError(PortalError):
    """The data store rejected a statement for a reason other than bad input."""
    status_code = 500
