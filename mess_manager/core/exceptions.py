from decimal import Decimal


class MessManagerException(Exception):
    """Base exception for the mess manager core"""

    status_code = 400


class UnauthorizedException(MessManagerException):
    """Raised when JWT validation fails"""

    status_code = 401


class ForbiddenException(MessManagerException):
    """Raised when the caller lacks the role or membership for an action"""

    status_code = 403


class NotFoundException(MessManagerException):
    """Raised when resource not found"""

    status_code = 404


class ValidationException(MessManagerException):
    """Raised for business logic validation errors"""

    status_code = 400


class DuplicateEntryException(MessManagerException):
    """Raised when a record already exists for the same uniqueness key"""

    status_code = 409


class WindowClosedException(MessManagerException):
    """Raised when a meal entry is created or changed after its entry window closed"""

    status_code = 409


class WindowStillOpenException(MessManagerException):
    """Raised when meals are locked before the cutoff without force"""

    status_code = 409


class LockedException(MessManagerException):
    """Raised when a locked meal entry is modified"""

    status_code = 409


class ImmutableException(MessManagerException):
    """Raised when an approved record is modified without manager privilege"""

    status_code = 409


class AlreadyApprovedException(MessManagerException):
    """Raised when approving a record twice"""

    status_code = 409


class CostMismatchException(MessManagerException):
    """Raised when a declared total does not match the itemised total"""

    status_code = 422

    def __init__(self, computed: Decimal, provided: Decimal):
        self.computed = computed
        self.provided = provided
        super().__init__(
            f"Total cost {provided} does not match calculated cost {computed} from items"
        )


class InvalidSignatureException(MessManagerException):
    """Raised when a QR payload signature does not verify"""

    status_code = 400


class ExpiredException(MessManagerException):
    """Raised when a QR token is past its expiry"""

    status_code = 410


class ExhaustedException(MessManagerException):
    """Raised when a QR token has no usage left or was deactivated"""

    status_code = 410
