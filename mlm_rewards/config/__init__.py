"""Configuration package."""

from mlm_rewards.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
