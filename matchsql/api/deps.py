"""
Shared dependencies for the MatchSQL API.

Provides:
- Structured logging for the "matchsql" logger tree
- Singleton execution gateway and orchestrator (created once, reused per request)
- Configuration constants for API behavior
"""

import os
import logging
from typing import Optional

from configs import QUERY_TIMEOUT_SECONDS, VERBOSE
from matchsql.adapters import ExecutionGateway, create_adapter_from_settings
from matchsql.orchestrator import CorrectionOrchestrator, create_orchestrator


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

def setup_logging() -> logging.Logger:
    """Configure structured logging for the package."""
    logger = logging.getLogger("matchsql")

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    log_level = "DEBUG" if VERBOSE else os.getenv("LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    return logger


logger = setup_logging()


# =============================================================================
# CONFIGURATION
# =============================================================================

# Outer guard; the orchestrator also checks its own deadline between attempts
REQUEST_TIMEOUT_SECONDS = QUERY_TIMEOUT_SECONDS + 5

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")


# =============================================================================
# SINGLETONS
# =============================================================================

_gateway: Optional[ExecutionGateway] = None
_orchestrator: Optional[CorrectionOrchestrator] = None


def get_gateway() -> ExecutionGateway:
    """Execution gateway for the configured database."""
    global _gateway
    if _gateway is None:
        _gateway = ExecutionGateway(create_adapter_from_settings)
    return _gateway


def get_orchestrator() -> CorrectionOrchestrator:
    """
    Get or create the singleton orchestrator instance.

    Raises:
        ConfigurationError: provider settings are invalid
    """
    global _orchestrator
    if _orchestrator is None:
        logger.info("Creating singleton CorrectionOrchestrator")
        _orchestrator = create_orchestrator(gateway=get_gateway())
    return _orchestrator


def reset_orchestrator() -> None:
    """Reset the singletons (useful for testing)."""
    global _orchestrator, _gateway
    _orchestrator = None
    _gateway = None
