import os
import stat
import datetime
import logging
import platform

from . import config

logger = logging.getLogger(__name__)


def get_config_dir() -> str:
    """Return ~/.credvault, creating it if needed."""
    config_dir = os.path.join(os.path.expanduser("~"), config.CONFIG_DIR_NAME)
    os.makedirs(config_dir, exist_ok=True)
    return config_dir


def set_owner_only_permissions(filepath: str) -> bool:
    """
    Set file to be readable/writable by owner only.
    Windows relies on the per-user profile ACLs and is left untouched.
    """
    if platform.system() == 'Windows':
        return True
    try:
        os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)  # 600
    except OSError as e:
        logger.warning(f"Failed to set owner-only permissions for {filepath}: {e}")
        return False
    return True


def log_action(action: str, details: str) -> None:
    """Append a security-relevant action to the audit log."""
    log_dir = os.path.join(get_config_dir(), "logs")
    os.makedirs(log_dir, exist_ok=True)

    log_file = os.path.join(log_dir, config.AUDIT_LOG_FILE)
    timestamp = datetime.datetime.now().isoformat()

    try:
        with open(log_file, 'a', encoding='utf-8') as f:
            f.write(f"{timestamp} | {action} | {details}\n")
    except OSError as e:
        logger.warning(f"Could not write audit log {log_file}: {e}")
