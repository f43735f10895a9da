"""
Configuration for the translation orchestrator: constants, settings, logging.
"""
from .constants import *
from .logging_config import setup_logging, get_logger, job_logger, logger
from .settings import Settings, get_settings

__all__ = [
    # Logging
    'setup_logging',
    'get_logger',
    'job_logger',
    'logger',
    # Settings
    'Settings',
    'get_settings',
    # Constants (all exported via *)
]
