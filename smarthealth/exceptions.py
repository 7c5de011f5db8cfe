"""Error taxonomy shared by repositories, collaborators and flows.

Validation and authorization problems never raise: flows turn them into
terminal channel responses. The exceptions below describe infrastructure
and collaborator failures that the dispatcher must convert into a generic
"service unavailable" answer.
"""


class SmartHealthError(Exception):
    """Base class for all errors raised by the session engine."""


class SessionStoreError(SmartHealthError):
    """The session store could not be read or written."""


class SessionBusyError(SmartHealthError):
    """Another delivery for the same session holds the session lock."""


class DuplicateSubscriberError(SmartHealthError):
    """A subscriber with this phone number already has credentials."""


class CaseStateError(SmartHealthError):
    """A case status change is not allowed from its current status."""


class PaymentGatewayError(SmartHealthError):
    """The payment gateway could not initiate or report a payment."""


class SignatureError(SmartHealthError):
    """A payment callback failed HMAC verification."""


class TransactionNotFoundError(SmartHealthError):
    """No transaction exists for the given identifier."""


class NotificationError(SmartHealthError):
    """An outbound SMS could not be delivered."""
