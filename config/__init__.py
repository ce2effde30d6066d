"""Configuration module for docsift."""

from .settings import CrawlerSettings

__all__ = [
    'CrawlerSettings'
]
