"""Configuration module for the analytics client."""

from .logger_config import setup_logging
from .settings import EU_REGION_URL, US_REGION_URL, ClientBuilder, ClientConfig

__all__ = ["ClientConfig", "ClientBuilder", "US_REGION_URL", "EU_REGION_URL", "setup_logging"]
