"""Sources package for docsift.

Provides documentation site configuration loading.
"""

from .loader import SourceConfig, SourceLoader

__all__ = [
    'SourceConfig',
    'SourceLoader',
]
