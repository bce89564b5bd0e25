"""Configuration module for the purchase requests backend."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
