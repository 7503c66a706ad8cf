from .config_loader import ConfigLoader, get_nested_value

__all__ = ["ConfigLoader", "get_nested_value"]
