"""Configuration management for Bondi."""

from .schema import BondiSettings, ProviderSpec

__all__ = ["BondiSettings", "ProviderSpec"]
