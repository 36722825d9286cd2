"""Custom exceptions for the assured jobs system"""


class AssuredJobsError(Exception):
    """Base exception for all assured-jobs errors"""

    pass


class ConfigurationError(AssuredJobsError):
    """Raised when configuration values cannot be parsed"""

    pass


class StoreError(AssuredJobsError):
    """Raised when the shared state store is unreachable or rejects an operation"""

    pass


class RecoveryError(AssuredJobsError):
    """Raised when an orphan recovery step fails"""

    pass

