"""TOC extractor registry and lookup."""

from bookify.toc.base import TocExtractor

EXTRACTOR_REGISTRY: dict[str, type[TocExtractor]] = {}

# Consulted last, whatever the registration order
FALLBACK_EXTRACTOR = "generic"


def register_extractor(name: str):
    """Decorator to register a TOC extractor class."""
    def decorator(cls):
        EXTRACTOR_REGISTRY[name] = cls
        return cls
    return decorator


def get_extractor(url: str) -> TocExtractor:
    """Instantiate the first registered extractor that can handle ``url``."""
    for name, cls in EXTRACTOR_REGISTRY.items():
        if name == FALLBACK_EXTRACTOR:
            continue
        extractor = cls()
        if extractor.can_handle(url):
            return extractor

    if FALLBACK_EXTRACTOR not in EXTRACTOR_REGISTRY:
        raise ValueError(f"No TOC extractor can handle '{url}'")
    return EXTRACTOR_REGISTRY[FALLBACK_EXTRACTOR]()


def list_extractors() -> list[str]:
    """Return names of all registered extractors, fallback last."""
    names = [name for name in EXTRACTOR_REGISTRY if name != FALLBACK_EXTRACTOR]
    if FALLBACK_EXTRACTOR in EXTRACTOR_REGISTRY:
        names.append(FALLBACK_EXTRACTOR)
    return names


# Registers the generic fallback
from bookify.toc import generic  # noqa: E402,F401
