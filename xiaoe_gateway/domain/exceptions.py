"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class UnauthorizedError(DomainException):
    """Unknown user or bad credentials"""

    pass


class UserExistsError(DomainException):
    """Username is already registered"""

    pass


class UserNotFoundError(DomainException):
    """Referenced user does not exist"""

    pass


class InsufficientCreditsError(DomainException):
    """Balance too low for the requested operation"""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient credits: {required} required, {available} available")


class OrderNotFoundError(DomainException):
    """Referenced payment order does not exist"""

    pass


class OrderStateError(DomainException):
    """Order is not in a state that allows the requested transition"""

    pass


class SignatureInvalidError(DomainException):
    """Payment notification failed signature verification"""

    pass


class NotificationRejectedError(DomainException):
    """Verified notification whose content cannot be applied"""

    pass


class PaymentProviderError(DomainException):
    """Payment provider refused or failed to create an order"""

    pass


class GenerationError(DomainException):
    """Text generation did not produce a usable result"""

    pass


class UpstreamUnavailableError(GenerationError):
    """Vendor API timed out, was unreachable or returned a non-2xx status"""

    pass


class MalformedResponseError(GenerationError):
    """Vendor response could not be parsed as JSON"""

    pass


class SchemaMismatchError(GenerationError):
    """Vendor JSON does not have the expected shape"""

    pass


class UnsupportedModelError(GenerationError):
    """Model selector does not name a known vendor"""

    pass
