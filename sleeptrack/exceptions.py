"""
Standardized exception hierarchy for sleeptrack
Provides rich context, consistent logging, and user-friendly error messages
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4

import psycopg
import pydantic
import redis

logger = logging.getLogger(__name__)


class SleepTrackError(Exception):
    """
    Base exception for all sleeptrack errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise SleepTrackError(
            message="Failed to save sleep entry",
            user_id="123456",
            operation="add_entry",
            context={"entry_id": "abc-123"}
        )
    """

    log_level = logging.ERROR

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # 'message' is reserved by logging
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (User Input)
# ==========================================

class ValidationError(SleepTrackError):
    """
    Raised when caller input fails validation

    Examples:
    - Reminder time not in HH:MM format
    - Non-positive target hours

    The entry repository itself does not validate plausibility of
    bedtime/wake time pairs; that belongs to the caller.
    """

    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


# ==========================================
# Storage Errors
# ==========================================

class StorageError(SleepTrackError):
    """
    Backend unreachable, write rejected, or malformed response.

    The operation that raised it has not been applied to in-memory state.
    """

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("user_message", "We couldn't reach your sleep data. Please try again.")
        super().__init__(message=message, **kwargs)


class StorageConnectionError(StorageError):
    """Storage backend connection failed"""

    def __init__(self, message: str = "Storage connection failed", **kwargs):
        super().__init__(
            message=message,
            user_message="We're having trouble connecting to storage. Please try again in a moment.",
            **kwargs
        )


class QueryError(StorageError):
    """Storage read or write was rejected"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        context = kwargs.pop("context", None) or {}
        context.setdefault("query", query)
        super().__init__(
            message=message,
            user_message="We encountered an issue saving your data. Please try again.",
            context=context,
            **kwargs
        )


class MalformedDataError(StorageError):
    """Stored data could not be decoded into the app model"""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            user_message="Your saved sleep data could not be read.",
            **kwargs
        )


class RecordNotFoundError(SleepTrackError):
    """Requested record does not exist in the backend"""

    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


# ==========================================
# Authentication
# ==========================================

class AuthenticationError(SleepTrackError):
    """No authenticated user for an operation that writes"""

    log_level = logging.WARNING

    def __init__(
        self,
        message: str = "Authentication required",
        **kwargs
    ):
        super().__init__(
            message=message,
            user_message="Please sign in to save your sleep data.",
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(SleepTrackError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Notification Errors
# ==========================================

class NotificationError(SleepTrackError):
    """Scheduling or cancelling a reminder failed"""

    log_level = logging.WARNING

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            user_message="Your settings were saved, but the bedtime reminder could not be updated.",
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def validation_error_from(error: pydantic.ValidationError, **kwargs) -> ValidationError:
    """Convert a model validation failure (first error only) into ValidationError"""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    return ValidationError(
        first.get("msg", str(error)),
        field=field,
        value=first.get("input"),
        cause=error,
        **kwargs
    )


def wrap_storage_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> StorageError:
    """
    Wrap backend exceptions (psycopg, redis, filesystem, decoding) into the storage hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate StorageError subclass

    Example:
        try:
            await cur.execute(query, params)
        except psycopg.Error as e:
            raise wrap_storage_exception(e, operation="insert_sleep_entry", user_id="123456")
    """
    # Connection failures
    if isinstance(error, (psycopg.OperationalError, redis.ConnectionError, redis.TimeoutError)):
        return StorageConnectionError(
            message=f"Storage connection failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    # Rejected statements / commands
    elif isinstance(error, (psycopg.Error, redis.RedisError)):
        return QueryError(
            message=f"Storage query failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    # Undecodable payloads
    elif isinstance(error, (json.JSONDecodeError, pydantic.ValidationError, TypeError, KeyError)):
        return MalformedDataError(
            message=f"Malformed stored data: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    # Generic fallback (filesystem and anything else)
    else:
        return StorageError(
            message=f"{operation} failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
