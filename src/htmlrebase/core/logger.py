"""
Logging System

This module provides centralized logging configuration for the htmlrebase
command line tool. Library modules only ever call logging.getLogger(__name__);
handlers are attached here, by the application.
"""

import logging
import logging.handlers
import os
import sys
from typing import Optional, Dict
from pathlib import Path


class RebaseLogger:
    """
    Centralized logging setup for htmlrebase.

    Logs to stderr, and additionally to a rotating log file when a log
    directory is configured.
    """

    def __init__(self, log_dir: Optional[str] = None, app_name: str = "htmlrebase"):
        """
        Initialize the logging system.

        Args:
            log_dir: Directory to store log files, None for console only
            app_name: Name of the application, also the root logger name
        """
        self.log_dir = Path(log_dir) if log_dir else None
        self.app_name = app_name
        self.loggers: Dict[str, logging.Logger] = {}

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def setup_logger(self, level: int = logging.INFO) -> logging.Logger:
        """
        Set up the application logger with console and file handlers.

        Args:
            level: Console logging level (default: INFO)

        Returns:
            Configured logger instance
        """
        logger = logging.getLogger(self.app_name)
        logger.setLevel(logging.DEBUG)

        # Reconfiguring replaces the handlers installed by a previous call
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        detailed_formatter = logging.Formatter(
            '%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_formatter = logging.Formatter(
            '%(asctime)s | %(levelname)s | %(message)s',
            datefmt='%H:%M:%S'
        )

        # stdout may carry the rewritten document
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

        if self.log_dir is not None:
            log_file = self.log_dir / f"{self.app_name}.log"
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(detailed_formatter)
            logger.addHandler(file_handler)

        self.loggers['main'] = logger
        return logger

    def get_logger(self, name: str) -> logging.Logger:
        """
        Get a logger for a specific component.

        Args:
            name: Name of the component

        Returns:
            Logger instance for the component
        """
        full_name = f"{self.app_name}.{name}"

        if full_name not in self.loggers:
            self.loggers[full_name] = logging.getLogger(full_name)

        return self.loggers[full_name]

    def log_system_info(self):
        """Log system information for debugging."""
        logger = self.get_logger('system')

        logger.debug(f"Python version: {sys.version}")
        logger.debug(f"Platform: {sys.platform}")
        logger.debug(f"Working directory: {os.getcwd()}")
        if self.log_dir is not None:
            logger.debug(f"Log directory: {self.log_dir.absolute()}")


# Global logger instance
_logger_instance: Optional[RebaseLogger] = None


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Name of the component (optional)

    Returns:
        Logger instance
    """
    global _logger_instance

    if _logger_instance is None:
        _logger_instance = RebaseLogger()

    if name:
        return _logger_instance.get_logger(name)
    return logging.getLogger(_logger_instance.app_name)


def initialize_logging(log_dir: Optional[str] = None, level: int = logging.INFO) -> RebaseLogger:
    """
    Initialize the global logging system.

    Args:
        log_dir: Directory for log files, None for console only
        level: Console logging level

    Returns:
        The configured RebaseLogger
    """
    global _logger_instance
    _logger_instance = RebaseLogger(log_dir)
    _logger_instance.setup_logger(level)
    _logger_instance.log_system_info()
    return _logger_instance
