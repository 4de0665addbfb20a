"""
Configuration management for the VoteCheck biometric gate.

This module handles configuration loading from environment variables and
.env files. Only deployment-tunable values live here; the fixed security
parameters of the capture pipeline are in ``constants``.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

from .constants import (
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_TEMPLATE_STORE_FILE,
    EXTRACTION_TIMEOUT_SECONDS as DEFAULT_EXTRACTION_TIMEOUT,
    EXTRACTION_WORKERS as DEFAULT_EXTRACTION_WORKERS,
    FRAME_HISTORY_SIZE as DEFAULT_FRAME_HISTORY_SIZE,
    MIN_LIVENESS_FRAMES,
)

# Load environment variables from .env file if it exists
load_dotenv()

# =============================================================================
# Base Paths
# =============================================================================
BASE_DIR: Path = Path(__file__).resolve().parent.parent

# Project root directory (parent of src/)
PROJECT_ROOT: Path = BASE_DIR.parent

# =============================================================================
# Logging Configuration
# =============================================================================
# Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Render log events as JSON instead of console lines
STRUCTURED_LOGGING: bool = os.getenv("STRUCTURED_LOGGING", "true").lower() == "true"

# =============================================================================
# Matching Configuration
# =============================================================================
# Decision threshold on normalized similarity; trades false accepts for false rejects
SIMILARITY_THRESHOLD: float = float(
    os.getenv("SIMILARITY_THRESHOLD", str(DEFAULT_SIMILARITY_THRESHOLD))
)

# =============================================================================
# Extraction Configuration
# =============================================================================
# Upper bound for a single extraction request in seconds
EXTRACTION_TIMEOUT_SECONDS: float = float(
    os.getenv("EXTRACTION_TIMEOUT_SECONDS", str(DEFAULT_EXTRACTION_TIMEOUT))
)

# Number of worker threads used for extraction
EXTRACTION_WORKERS: int = int(
    os.getenv("EXTRACTION_WORKERS", str(DEFAULT_EXTRACTION_WORKERS))
)

# =============================================================================
# Capture Configuration
# =============================================================================
# Capacity of the per-session frame history ring buffer
FRAME_HISTORY_SIZE: int = int(
    os.getenv("FRAME_HISTORY_SIZE", str(DEFAULT_FRAME_HISTORY_SIZE))
)

# =============================================================================
# Storage Configuration
# =============================================================================
# JSON file holding enrolled templates for the file-backed store
TEMPLATE_STORE_PATH: Path = Path(
    os.getenv(
        "TEMPLATE_STORE_PATH", str(PROJECT_ROOT / "data" / DEFAULT_TEMPLATE_STORE_FILE)
    )
)

# =============================================================================
# Development and Debugging Configuration
# =============================================================================
# Enable debug mode (skips validation on import)
DEBUG_MODE: bool = os.getenv("DEBUG_MODE", "false").lower() == "true"


# =============================================================================
# Configuration Validation
# =============================================================================
def validate_configuration() -> bool:
    """
    Validate the current configuration settings.

    Returns
    -------
    bool
        True if configuration is valid.

    Raises
    ------
    ValueError
        If critical configuration parameters are invalid.
    """
    errors = []

    if not 0.0 <= SIMILARITY_THRESHOLD <= 1.0:
        errors.append("SIMILARITY_THRESHOLD must be between 0.0 and 1.0")

    if EXTRACTION_TIMEOUT_SECONDS <= 0:
        errors.append("EXTRACTION_TIMEOUT_SECONDS must be positive")

    if EXTRACTION_WORKERS < 1:
        errors.append("EXTRACTION_WORKERS must be at least 1")

    if FRAME_HISTORY_SIZE < MIN_LIVENESS_FRAMES:
        errors.append(f"FRAME_HISTORY_SIZE must be at least {MIN_LIVENESS_FRAMES}")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if LOG_LEVEL not in valid_log_levels:
        errors.append(f"LOG_LEVEL must be one of {valid_log_levels}")

    if errors:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"- {error}" for error in errors)
        )

    return True


def get_config_summary() -> dict:
    """
    Get a summary of the current configuration.

    Returns
    -------
    dict
        Dictionary containing key configuration parameters.
    """
    return {
        "matching": {"similarity_threshold": SIMILARITY_THRESHOLD},
        "extraction": {
            "timeout_seconds": EXTRACTION_TIMEOUT_SECONDS,
            "workers": EXTRACTION_WORKERS,
        },
        "capture": {"frame_history_size": FRAME_HISTORY_SIZE},
        "storage": {"template_store_path": str(TEMPLATE_STORE_PATH)},
        "logging": {"level": LOG_LEVEL, "structured": STRUCTURED_LOGGING},
        "debug_mode": DEBUG_MODE,
    }


# Validate configuration on import
if not DEBUG_MODE:
    validate_configuration()
