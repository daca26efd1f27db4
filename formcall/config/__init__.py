"""
Configuration module for the voice form call application.

This module provides centralized configuration for the application, including
constants, logging setup, and environment-based settings.

Key components:
- constants: Defines application-wide constants such as wire message types,
  tool names, close codes and timing defaults.
- logging_config: Provides a consistent logging infrastructure with support for
  console and file-based logging with rotation capabilities.

Usage examples:
```python
from formcall.config.constants import LOGGER_NAME, HANDSHAKE_TIMEOUT
from formcall.config.logging_config import configure_logging

logger = configure_logging()
logger.info("Application started")
```
"""

# Config module initialization
