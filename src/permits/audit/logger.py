"""
Audit logging infrastructure for permit review changes.

Provides the rotating file logger that mirrors audit trail rows and
records denied workflow attempts for security review.
"""
import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path


AUDIT_LOGGER_NAME = 'permits_audit'
DEFAULT_AUDIT_LOG_PATH = '/var/log/permits/audit.log'


def ensure_log_directory(logfile_path):
    """
    Ensure log directory exists and is writable.

    Args:
        logfile_path: Desired log file path

    Returns:
        str: Usable log file path (may fall back to temp directory)
    """
    log_dir = Path(logfile_path).parent

    try:
        log_dir.mkdir(parents=True, exist_ok=True)

        test_file = log_dir / '.write_test'
        test_file.touch()
        test_file.unlink()

        return str(logfile_path)
    except (PermissionError, OSError) as e:
        fallback_path = os.path.join(tempfile.gettempdir(), 'permits_audit.log')
        logging.getLogger(__name__).warning(
            f"Could not create log directory {log_dir}: {e}; falling back to {fallback_path}"
        )
        return fallback_path


def get_audit_logger(logfile_path=None):
    """
    Get or create audit logger with rotating file handler.

    Uses singleton pattern - returns existing logger if already configured.

    Args:
        logfile_path: Path to audit log file (default: $PERMITS_AUDIT_LOG_PATH
                      or /var/log/permits/audit.log)

    Returns:
        logging.Logger: Configured audit logger
    """
    logger = logging.getLogger(AUDIT_LOGGER_NAME)
    logger.setLevel(logging.INFO)

    if not logger.handlers:
        if logfile_path is None:
            logfile_path = os.getenv('PERMITS_AUDIT_LOG_PATH', DEFAULT_AUDIT_LOG_PATH)
        logfile_path = ensure_log_directory(logfile_path)

        # Rotating file handler: 10MB files, 5 backups
        handler = RotatingFileHandler(
            logfile_path,
            maxBytes=10_000_000,
            backupCount=5,
            encoding='utf-8'
        )

        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)

        logger.addHandler(handler)

    return logger


def reset_audit_logger():
    """Close and detach audit handlers so the next call reconfigures."""
    logger = logging.getLogger(AUDIT_LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def log_denied(actor, action, target_type, target_id, reason):
    """
    Record a refused attempt for security review.

    Args:
        actor: Identity (or None) that made the attempt
        action: Attempted action name
        target_type: Model name of the target (e.g. 'Application')
        target_id: Primary key of the target
        reason: Exception code explaining the refusal
    """
    actor_str = str(actor) if actor is not None else 'anonymous'
    get_audit_logger().warning(
        f"user={actor_str} action=DENIED attempted={action} "
        f"model={target_type} pk={target_id} reason={reason}"
    )
