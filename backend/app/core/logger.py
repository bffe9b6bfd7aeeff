"""
Structured logging configuration for the application.
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional
from pathlib import Path

# Create logs directory if it doesn't exist
log_dir = Path("logs")
log_dir.mkdir(exist_ok=True)

# Configure logging format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

# Create handlers
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(formatter)
console_handler.setLevel(logging.INFO)

# File handler for all logs
file_handler = logging.FileHandler(
    log_dir / f"app_{datetime.now().strftime('%Y%m%d')}.log"
)
file_handler.setFormatter(formatter)
file_handler.setLevel(logging.DEBUG)

# File handler for errors only
error_handler = logging.FileHandler(
    log_dir / f"errors_{datetime.now().strftime('%Y%m%d')}.log"
)
error_handler.setFormatter(formatter)
error_handler.setLevel(logging.ERROR)

# Configure root logger
root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)
# Guard against duplicate handlers on reload
if not any(h is console_handler for h in root_logger.handlers):
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(error_handler)

# Create application logger
logger = logging.getLogger("app")


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Sanitize sensitive data before logging.
    Removes passwords, tokens, API keys, etc.
    """
    sensitive_keys = {
        "password", "token", "api_key", "secret", "authorization",
        "otp",
    }

    sanitized = {}
    for key, value in data.items():
        if any(sensitive in key.lower() for sensitive in sensitive_keys):
            sanitized[key] = "***REDACTED***"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        elif isinstance(value, str) and len(value) > 500:
            sanitized[key] = value[:500] + "...[truncated]"
        else:
            sanitized[key] = value

    return sanitized


def log_data_access(
    user_id: Optional[str],
    resource_type: str,
    resource_id: str,
    action: str,
    **kwargs
):
    """Log a read or write on a resident-owned resource."""
    logger.info(
        f"Data Access: {action} on {resource_type} {resource_id}",
        extra={
            "user_id": user_id,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "action": action,
            **sanitize_log_data(kwargs)
        }
    )


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None
):
    """Log an error with context."""
    logger.error(
        f"Error: {type(error).__name__}: {str(error)}",
        extra=sanitize_log_data(context or {}),
        exc_info=error
    )


__all__ = [
    "logger",
    "log_data_access",
    "log_error",
    "sanitize_log_data"
]
