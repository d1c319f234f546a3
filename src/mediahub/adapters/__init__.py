from mediahub.adapters.base import SiteAdapter
from mediahub.adapters.generic import GenericAdapter
from mediahub.adapters.maccms import MacCmsAdapter

_REGISTRY: dict[str, type[SiteAdapter]] = {}


def register(adapter_cls: type[SiteAdapter]) -> type[SiteAdapter]:
    """Register a response adapter. Can be used as a decorator."""
    _REGISTRY[adapter_cls.name] = adapter_cls
    return adapter_cls


def get_adapter(name: str) -> type[SiteAdapter]:
    if name not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise ValueError(f"Unknown adapter: '{name}'. Available: {available}")
    return _REGISTRY[name]


def list_adapters() -> list[type[SiteAdapter]]:
    return list(_REGISTRY.values())


# Register built-in adapters
register(GenericAdapter)
register(MacCmsAdapter)

__all__ = ["SiteAdapter", "register", "get_adapter", "list_adapters"]
