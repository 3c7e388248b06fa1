class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class NotFoundError(DomainError):
    """Raised when a referenced session or subject does not exist."""


class AuthorizationError(DomainError):
    """Raised when a caller lacks permission for an action."""


class DuplicatePresenceError(Exception):
    """Raised by a presence repository when (session, subject) is already admitted."""


class TransientError(Exception):
    """Infrastructure failure; the caller should retry later."""


class PersistenceUnavailableError(TransientError):
    """The ledger's storage could not be reached."""


class NetworkUnavailableError(TransientError):
    """The device could not reach the ledger."""


class LedgerRefusedError(TransientError):
    """The ledger refused the request itself (credentials, rate limit, routing), not the claim."""
