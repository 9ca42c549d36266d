"""
Secure Logging - Logging with automatic sensitive data masking

This module provides:
- SensitiveDataFilter for masking secrets and contact data in logs
- SecureFormatter / JSONSecureFormatter (text or structured output)
- configure_secure_logging() for global setup

Usage:
    from inbox_core.utils.secure_logging import configure_secure_logging

    configure_secure_logging()
    logger.info(f"Connecting to {settings.mongodb_uri}")  # credentials masked
"""

import re
import logging
import json
from typing import List, Tuple, Optional, Any, Dict
from logging import LogRecord, Filter, Formatter


# Each tuple: (compiled regex pattern, replacement string or callable)
SENSITIVE_PATTERNS: List[Tuple[re.Pattern, Any]] = [
    # Service API keys
    (re.compile(r'(sk_live_|sk_test_|sk_)[a-zA-Z0-9]{16,}'), '[API_KEY_REDACTED]'),
    (re.compile(r'(api[_-]?key|apikey)["\s:=]+["\']?([a-zA-Z0-9_-]{16,})["\']?', re.IGNORECASE), r'\1=[REDACTED]'),

    # Bearer/Auth tokens
    (re.compile(r'(Bearer\s+)[a-zA-Z0-9_.-]+', re.IGNORECASE), r'\1[TOKEN_REDACTED]'),
    (re.compile(r'(Authorization:\s*)[^\s]+', re.IGNORECASE), r'\1[REDACTED]'),

    # JWT tokens
    (re.compile(r'eyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+'), '[JWT_REDACTED]'),

    # Passwords and secrets
    (re.compile(r'(password|passwd|pwd|secret)["\s:=]+["\']?([^\s"\']{4,})["\']?', re.IGNORECASE), r'\1=[REDACTED]'),

    # MongoDB URIs with credentials
    (re.compile(r'mongodb(\+srv)?://([^:/@\s]+):([^@\s]+)@'), r'mongodb\1://[USER]:[PASS]@'),

    # Email addresses
    (re.compile(r'([a-zA-Z0-9._%+-]+)@([a-zA-Z0-9.-]+)\.([a-zA-Z]{2,})'), lambda m: f"{m.group(1)[:1]}***@***.{m.group(3)}"),

    # International phone numbers (WhatsApp contacts), keep last 4 digits
    (re.compile(r'\+\d{1,3}[\s-]?\(?\d{2,3}\)?[\s-]?\d{3,5}[\s-]?(\d{4})\b'), r'+** *****-\1'),
]

# LogRecord attributes that are never masked
_RECORD_ATTRS = (
    'msg', 'args', 'name', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'exc_info', 'exc_text', 'stack_info',
)


class SensitiveDataFilter(Filter):
    """
    Logging filter that masks sensitive data in log messages, arguments and
    string/dict ``extra`` fields. Always lets the record through.
    """

    def __init__(self, name: str = '', additional_patterns: Optional[List[Tuple[re.Pattern, Any]]] = None):
        super().__init__(name)
        self.patterns = SENSITIVE_PATTERNS.copy()
        if additional_patterns:
            self.patterns.extend(additional_patterns)

    def filter(self, record: LogRecord) -> bool:
        if record.msg:
            record.msg = self._mask_sensitive(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, (list, tuple)):
                record.args = tuple(self._mask_value(arg) for arg in record.args)

        for key, value in list(record.__dict__.items()):
            if key in _RECORD_ATTRS:
                continue
            if isinstance(value, str):
                setattr(record, key, self._mask_sensitive(value))
            elif isinstance(value, dict):
                setattr(record, key, self._mask_dict(value))

        return True

    def _mask_value(self, value: Any) -> Any:
        # Keep numbers as numbers so %d/%f placeholders still format
        if isinstance(value, str):
            return self._mask_sensitive(value)
        return value

    def _mask_sensitive(self, text: str) -> str:
        """Apply all masking patterns to text."""
        if not text:
            return text

        result = text
        for pattern, replacement in self.patterns:
            result = pattern.sub(replacement, result)
        return result

    def _mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively mask sensitive data in a dictionary."""
        result = {}
        for key, value in data.items():
            if isinstance(value, str):
                result[key] = self._mask_sensitive(value)
            elif isinstance(value, dict):
                result[key] = self._mask_dict(value)
            elif isinstance(value, (list, tuple)):
                result[key] = [self._mask_value(v) for v in value]
            else:
                result[key] = value
        return result


class SecureFormatter(Formatter):
    """Text formatter with trace ID and sensitive data masking."""

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        include_trace_id: bool = True,
    ):
        if fmt is None:
            if include_trace_id:
                fmt = '%(asctime)s - %(name)s - %(levelname)s - [%(trace_id)s] - %(message)s'
            else:
                fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        super().__init__(fmt, datefmt)
        self.include_trace_id = include_trace_id
        self._sensitive_filter = SensitiveDataFilter()

    def format(self, record: LogRecord) -> str:
        if self.include_trace_id and not hasattr(record, 'trace_id'):
            record.trace_id = '-'

        self._sensitive_filter.filter(record)
        return super().format(record)


class JSONSecureFormatter(Formatter):
    """
    JSON log formatter with sensitive data masking.

    ``extra`` fields are emitted as top-level keys.
    """

    def __init__(self):
        super().__init__()
        self._sensitive_filter = SensitiveDataFilter()

    def format(self, record: LogRecord) -> str:
        self._sensitive_filter.filter(record)

        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if hasattr(record, 'trace_id'):
            log_data['trace_id'] = record.trace_id

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key in ('message', 'trace_id', 'asctime'):
                continue
            if not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


def configure_secure_logging(
    level: int = logging.INFO,
    format_type: str = 'text',  # 'text' or 'json'
    include_trace_id: bool = True,
    additional_patterns: Optional[List[Tuple[re.Pattern, Any]]] = None,
) -> None:
    """
    Configure secure logging globally.

    Replaces the root logger's handlers with a single console handler that
    masks sensitive data.

    Args:
        level: Logging level
        format_type: 'text' for human-readable, 'json' for structured logs
        include_trace_id: Include trace_id in text output
        additional_patterns: Additional regex patterns to mask
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.addFilter(SensitiveDataFilter(additional_patterns=additional_patterns))

    if format_type == 'json':
        formatter = JSONSecureFormatter()
    else:
        formatter = SecureFormatter(include_trace_id=include_trace_id)

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


__all__ = [
    'SensitiveDataFilter',
    'SecureFormatter',
    'JSONSecureFormatter',
    'SENSITIVE_PATTERNS',
    'configure_secure_logging',
]
