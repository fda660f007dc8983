from sqlalchemy.exc import OperationalError, SQLAlchemyError


class ServiceError(Exception):
    """Base class for every error the order service raises on purpose."""


class ValidationError(ServiceError):
    """Caller input is missing or malformed. Raised before any state change."""

    def __init__(self, message, fields=None):
        super().__init__(message)
        self.fields = list(fields or [])


class NotFoundError(ServiceError):
    pass


class TransientError(ServiceError):
    """Lock contention or timeout. The whole call is safe to retry."""


class StorageError(ServiceError):
    pass


class RenderError(ServiceError):
    """The invoice document could not be produced."""


class DeliveryError(ServiceError):
    """A mail could not be built or delivered. Never leaves Mailer.send."""


class GatewayError(ServiceError):
    pass


class ConfigError(ServiceError):
    pass


def translate_db_error(exc: SQLAlchemyError) -> ServiceError:
    """Map a SQLAlchemy failure to the service taxonomy.

    OperationalError covers lock wait timeouts, deadlocks, "database is
    locked" and dropped connections, all of which clear up on retry.
    """
    if isinstance(exc, OperationalError):
        return TransientError(str(exc.orig or exc))
    return StorageError(str(exc))
