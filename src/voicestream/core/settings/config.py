"""
Centralized application configuration.

Edit the variables below to configure development settings.
"""

import logging

# =============================================================================
# DEVELOPMENT SETTINGS - Edit these for local development
# =============================================================================
LOG_LEVEL = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_TO_CONSOLE = False  # Set to True to output logs to terminal
# =============================================================================

# =============================================================================
# AUDIO FORMAT - every streaming provider expects PCM16 LE mono at this rate
# =============================================================================
SAMPLE_RATE = 16000
CHANNELS = 1
CHUNK_DURATION_MS = 100
# =============================================================================

# =============================================================================
# STREAMING SETTINGS
# =============================================================================
COMMIT_TIMEOUT_SECONDS = 10.0  # Max wait for the final transcript after stop
KEEPALIVE_INTERVAL_SECONDS = 5.0
CONNECT_TIMEOUT_SECONDS = 10.0
DEEPGRAM_MAX_KEYTERMS = 50
# =============================================================================


def get_log_level() -> int:
    """Get the logging level as an integer."""
    return getattr(logging, LOG_LEVEL.upper(), logging.INFO)
