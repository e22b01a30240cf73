import json
import logging
import re
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Context variables for correlation
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
query_var: ContextVar[Optional[str]] = ContextVar('query', default=None)
playlist_var: ContextVar[Optional[str]] = ContextVar('playlist', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)

_CONTEXT_FIELDS = (
    ('request_id', request_id_var, 'requestId'),
    ('query', query_var, 'query'),
    ('playlist', playlist_var, 'playlist'),
    ('stage', stage_var, 'stage'),
)


# (name pattern, minimum secret length); longer-named patterns come first
_SECRET_PATTERNS = (
    (r'spotify_access_token|access_token|bearer|authorization', 30),
    (r'youtube_api_key|api_key', 20),
    (r'client_secret', 20),
    (r'token|key|secret|password|auth', 10),
)


class SecretMasker:
    """Masks credentials that end up in log messages or fields."""

    def __init__(self):
        self.compiled_patterns = [
            re.compile(rf'(?i)({names})[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{{{min_len},}})["\']?')
            for names, min_len in _SECRET_PATTERNS
        ]

    @staticmethod
    def _mask(match: 're.Match') -> str:
        name, secret = match.group(1), match.group(2)
        # Keep first 4 and last 4 characters
        if len(secret) > 8:
            return f"{name}: {secret[:4]}{'*' * (len(secret) - 8)}{secret[-4:]}"
        return f"{name}: {'*' * len(secret)}"

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text
        for pattern in self.compiled_patterns:
            text = pattern.sub(self._mask, text)
        return text

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.mask_secrets(value)
        if isinstance(value, dict):
            return self.mask_dict(value)
        if isinstance(value, (list, tuple)):
            return [self._mask_value(item) for item in value]
        return value

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive information in a (nested) dictionary."""
        if not data:
            return data
        return {key: self._mask_value(value) for key, value in data.items()}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        """Initialize formatter."""
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        for _, var, key in _CONTEXT_FIELDS:
            value = var.get()
            if value:
                log_entry[key] = value

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        fields = getattr(record, 'fields', None)
        if fields:
            log_entry['fields'] = self.masker.mask_dict(fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class CorrelationContext:
    """Context manager for correlation data."""

    def __init__(self, request_id: Optional[str] = None,
                 query: Optional[str] = None,
                 playlist: Optional[str] = None,
                 stage: Optional[str] = None):
        """Initialize correlation context."""
        self._values = {
            'request_id': request_id,
            'query': query,
            'playlist': playlist,
            'stage': stage,
        }
        self._tokens = []

    def __enter__(self):
        """Set correlation context."""
        for name, var, _ in _CONTEXT_FIELDS:
            value = self._values[name]
            if value is not None:
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore correlation context."""
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  request_id: Optional[str] = None) -> logging.Logger:
    """Setup structured logging on the package logger."""
    logger = logging.getLogger('mixmate')
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    formatter = StructuredFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if request_id:
        request_id_var.set(request_id)

    return logger


def get_logger(name: str = 'mixmate') -> logging.Logger:
    """Get logger with structured formatting."""
    return logging.getLogger(name)


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None,
                    exc_info: bool = False, **kwargs) -> None:
    """Log message with additional fields."""
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    merged = dict(fields or {})
    merged.update(kwargs)
    logger.log(levelno, message, exc_info=exc_info, extra={'fields': merged} if merged else None)


# Convenience functions for common logging patterns
def log_search_start(logger: logging.Logger, query: str, limit: int, sources: list, **kwargs):
    """Log aggregated search start."""
    with CorrelationContext(query=query, stage='search_start'):
        log_with_fields(logger, 'INFO', 'Search started', {
            'limit': limit,
            'sources': sources,
            **kwargs
        })


def log_search_complete(logger: logging.Logger, query: str, total: int,
                        failed_sources: list, **kwargs):
    """Log aggregated search completion."""
    with CorrelationContext(query=query, stage='search_complete'):
        log_with_fields(logger, 'INFO', 'Search completed', {
            'total': total,
            'failed_sources': failed_sources,
            **kwargs
        })


def log_source_failure(logger: logging.Logger, source: str, error: Exception, **kwargs):
    """Log a search source that failed and was skipped."""
    with CorrelationContext(stage='source_failure'):
        log_with_fields(logger, 'WARNING', f'Search source {source} unavailable', {
            'source': source,
            'error_type': type(error).__name__,
            'error_message': str(error),
            **kwargs
        })


def log_export_start(logger: logging.Logger, playlist: str, song_count: int, target: str, **kwargs):
    """Log playlist export start."""
    with CorrelationContext(playlist=playlist, stage='export_start'):
        log_with_fields(logger, 'INFO', 'Export started', {
            'song_count': song_count,
            'target': target,
            **kwargs
        })


def log_export_complete(logger: logging.Logger, playlist: str, matched: int,
                        unmatched: int, added: int, **kwargs):
    """Log playlist export completion."""
    with CorrelationContext(playlist=playlist, stage='export_complete'):
        log_with_fields(logger, 'INFO', 'Export completed', {
            'matched': matched,
            'unmatched': unmatched,
            'added': added,
            **kwargs
        })


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs):
    """Log error with exception details."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    }, exc_info=error)
