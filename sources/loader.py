"""Documentation site configuration.

Each ``<name>.yaml`` file in the sources directory describes one site: the
seed URLs a crawl starts from, the CSS selector of the page's main content,
and optional per-site depth and concurrency limits.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

MAX_SOURCE_DEPTH = 10


@dataclass
class SourceConfig:
    """Crawl settings for one documentation site."""
    name: str
    base_urls: List[str]
    selector: str
    depth: int = 3
    concurrency: Optional[int] = None
    enabled: bool = True

    def __post_init__(self):
        if not self.name:
            raise ValueError("Source name cannot be empty")
        if not self.base_urls:
            raise ValueError("Source must have at least one base URL")
        if not self.selector or not self.selector.strip():
            raise ValueError("Source must define a content selector")
        if not 0 <= self.depth <= MAX_SOURCE_DEPTH:
            raise ValueError(f"Depth must be between 0 and {MAX_SOURCE_DEPTH}")
        if self.concurrency is not None and self.concurrency < 1:
            raise ValueError("Concurrency must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SourceConfig':
        urls = data['base_urls']
        if isinstance(urls, str):
            urls = [urls]
        return cls(
            name=data['name'],
            base_urls=list(urls),
            selector=data['selector'],
            depth=data.get('depth', 3),
            concurrency=data.get('concurrency'),
            enabled=data.get('enabled', True)
        )


class SourceLoader:
    """Reads site configurations from a directory of YAML files.

    Parsed configurations are cached per file and re-read when the file's
    modification time moves forward.
    """

    def __init__(self, sources_dir: Optional[Path] = None):
        """Initialize source loader.

        Args:
            sources_dir: Directory containing ``*.yaml`` site files.
                        Defaults to the bundled sources.
        """
        self.sources_dir = Path(sources_dir) if sources_dir is not None else Path(__file__).parent
        self._cache: Dict[str, SourceConfig] = {}
        self._mtimes: Dict[str, float] = {}

    def load_source_config(self, source_name: str) -> Optional[SourceConfig]:
        """Load one site by file stem.

        Returns:
            The configuration, or None when the file is missing or invalid
        """
        path = self.sources_dir / f"{source_name}.yaml"
        if not path.exists():
            logger.warning(f"Source configuration not found: {path}")
            return None

        mtime = path.stat().st_mtime
        if source_name in self._cache and self._mtimes[source_name] >= mtime:
            return self._cache[source_name]

        try:
            data = yaml.safe_load(path.read_text(encoding='utf-8'))
            if not isinstance(data, dict):
                logger.error(f"Source file {path} does not hold a mapping")
                return None

            # the file stem is the source's identity
            declared = data.get('name', source_name)
            if declared != source_name:
                logger.warning(f"{path} declares name {declared!r}, using {source_name!r}")
            config = SourceConfig.from_dict({**data, 'name': source_name})
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML file {path}: {e}")
            return None
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Invalid source configuration in {path}: {e}")
            return None

        self._cache[source_name] = config
        self._mtimes[source_name] = mtime
        logger.debug(f"Loaded source {source_name}: {len(config.base_urls)} seed(s), "
                     f"selector {config.selector!r}")
        return config

    def load_all_sources(self) -> Dict[str, SourceConfig]:
        """Load every valid site in the directory, keyed by name in name order."""
        if not self.sources_dir.is_dir():
            logger.warning(f"Sources directory not found: {self.sources_dir}")
            return {}

        sources = {}
        for path in sorted(self.sources_dir.glob("*.yaml")):
            config = self.load_source_config(path.stem)
            if config is not None:
                sources[path.stem] = config

        logger.info(f"Loaded {len(sources)} source configurations from {self.sources_dir}")
        return sources

    def get_enabled_sources(self) -> Dict[str, SourceConfig]:
        return {name: config for name, config in self.load_all_sources().items() if config.enabled}
