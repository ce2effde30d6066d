"""Observability package for docsift."""

from .logging import setup_logging, JSONFormatter, ColoredFormatter

__all__ = [
    'setup_logging',
    'JSONFormatter',
    'ColoredFormatter'
]
