import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from wellness_tracker import constants
from wellness_tracker.logging_config import get_logger


def backup(db_path, backup_label: str = "backup", backup_dir=None) -> Optional[Path]:
    """
    Copy the database file to a timestamped backup.

    Args:
        db_path: Database file to copy
        backup_label: Suffix for the backup filename (spaces become underscores)
        backup_dir: Target directory (defaults to BACKUP_DIR)

    Returns:
        Path of the backup, or None when there was no database to copy

    Raises:
        OSError: if the copy fails or the copy's size does not match
    """
    logger = get_logger('backup', 'migrations')
    db_path = Path(db_path)
    if not db_path.exists():
        logger.info("No existing database at %s to back up", db_path)
        return None

    target_dir = Path(backup_dir or constants.BACKUP_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    label = backup_label.strip().replace(" ", "_") or "backup"
    backup_path = target_dir / f"{timestamp}_{label}.db"

    source_size = db_path.stat().st_size
    shutil.copy2(db_path, backup_path)

    backup_size = backup_path.stat().st_size
    if backup_size != source_size:
        raise OSError(f"Backup size mismatch for {backup_path}: source {source_size}, backup {backup_size}")

    logger.info("Backup saved to %s (%.1fMB)", backup_path, backup_size / (1024 * 1024))
    return backup_path


def list_backups(backup_dir=None) -> list[Path]:
    target_dir = Path(backup_dir or constants.BACKUP_DIR)
    if not target_dir.exists():
        return []
    return sorted(target_dir.glob("*.db"))
