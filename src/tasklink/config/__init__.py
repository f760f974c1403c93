"""Configuration loading exports."""

from tasklink.config.loader import load_config

__all__ = ["load_config"]
