import json
import logging

logger = logging.getLogger(__name__)

### PEP-249 Mandated ###
# https://peps.python.org/pep-0249/#exceptions
class Error(Exception):
    """Base class for DB-API2.0 exceptions.
    `message`: An optional user-friendly error message. It should be short, actionable and stable
    `context`: Optional extra context about the error. MUST be JSON serializable
    """

    def __init__(self, message=None, context=None, *args, **kwargs):
        super().__init__(message, *args, **kwargs)
        self.message = message
        self.context = context or {}

    def __str__(self):
        return self.message

    def message_with_context(self):
        return self.message + ": " + json.dumps(self.context, default=str)


class Warning(Exception):
    pass


class InterfaceError(Error):
    pass


class DatabaseError(Error):
    pass


class InternalError(DatabaseError):
    pass


class OperationalError(DatabaseError):
    pass


class ProgrammingError(DatabaseError):
    pass


class IntegrityError(DatabaseError):
    pass


class DataError(DatabaseError):
    pass


class NotSupportedError(DatabaseError):
    pass


class TransactionError(DatabaseError):
    """
    Exception raised when a buffered transaction cannot be committed or rolled back.

    The underlying cause is preserved via exception chaining.
    """

    pass


### Custom error classes ###
class ConfigurationError(InterfaceError):
    """Thrown at connect time if no dataset (or database) was configured.
    Always raised before any request reaches BigQuery.
    """

    pass


class SessionError(OperationalError):
    """Thrown if BigQuery refused to create a session for this connection.
    Its context will have the following keys:
    "original-exception": The google-cloud-bigquery exception
    "job-id": The id of the session-creating job (if available)
    """

    pass


class ServerOperationError(DatabaseError):
    """Thrown if a query job moved to an error state, if for example there was a syntax
    error or the caller lacks permissions.
    Its context will have the following keys:
    "original-exception": The google-cloud-bigquery exception
    "job-id": The BigQuery job id (if available)
    "sql": The text that was submitted
    """

    pass


class RateLimitExceededError(ServerOperationError):
    """Thrown if BigQuery rejected a query with "too many table update operations for
    this table" and the query could not be, or was already, retried.
    """

    pass
