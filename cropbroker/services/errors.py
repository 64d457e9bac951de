"""Exceptions raised by the service layer.

Routers translate these into HTTP responses; the chat dispatcher turns
``NegotiationError`` into a reply message instead.
"""


class NotFoundError(LookupError):
    """A referenced entity does not exist."""


class AccessDeniedError(Exception):
    """The caller does not own the entity it is acting on."""


class InvalidTransitionError(ValueError):
    """A status change that the transition table does not allow."""


class NegotiationError(ValueError):
    """A chat command that was understood but cannot be carried out.

    The message is sent back verbatim to the sender.
    """


class ConflictError(ValueError):
    """A unique value (such as an email) is already taken."""


class AuthenticationError(Exception):
    """Credentials or token could not be verified."""
