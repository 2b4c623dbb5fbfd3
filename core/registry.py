"""Source and provider registries for notchdeck.

Register signal sources and media providers by type name. The runtime
reads panel.yaml and instantiates the right classes by looking them up.

Usage:
    @register_source("weather")
    class WeatherSource(DataSource):
        ...

    @register_provider("playerctl")
    class PlayerctlProvider(MediaProvider):
        ...
"""

import logging

logger = logging.getLogger(__name__)

SOURCE_REGISTRY = {}
PROVIDER_REGISTRY = {}


def register_source(name):
    """Decorator to register a data source class by type name."""
    def decorator(cls):
        SOURCE_REGISTRY[name] = cls
        logger.debug("Registered source type: %s -> %s", name, cls.__name__)
        return cls
    return decorator


def register_provider(name):
    """Decorator to register a media provider class by type name."""
    def decorator(cls):
        PROVIDER_REGISTRY[name] = cls
        logger.debug("Registered provider type: %s -> %s", name, cls.__name__)
        return cls
    return decorator


def get_source_class(name):
    """Look up a data source class, or None."""
    return SOURCE_REGISTRY.get(name)


def get_provider_class(name):
    """Look up a media provider class, or None."""
    return PROVIDER_REGISTRY.get(name)
