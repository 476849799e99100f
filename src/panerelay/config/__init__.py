"""Configuration management for panerelay.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for the listen address and the
access token.
"""

from panerelay.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
