"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class StoreError(DomainException):
    """A persistence store call failed"""

    pass


class StoreTimeoutError(StoreError):
    """
    A persistence store call did not finish in time.

    The call was still waited out, so `completed` tells whether it went on to
    succeed, and `result` holds what it returned if it did.
    """

    def __init__(self, message: str, completed: bool = False, result=None):
        super().__init__(message)
        self.completed = completed
        self.result = result


class InvalidDateError(DomainException):
    """Date string is not ISO (YYYY-MM-DD) or UK (DD/MM/YYYY) formatted"""

    pass


class NotificationError(DomainException):
    """Notification webhook rejected the event or is unreachable"""

    pass


class SettlementLoadError(DomainException):
    """Obligations or accounts for a user could not be loaded, so nothing can be evaluated"""

    pass
