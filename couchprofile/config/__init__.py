"""Configuration module for the profile store."""
from .settings import StoreConfig, load_settings

__all__ = ["StoreConfig", "load_settings"]
