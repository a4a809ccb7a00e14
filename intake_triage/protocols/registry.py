"""Hot-reloadable crisis protocol registry.

The operator-editable YAML table is parsed into an immutable
ProtocolSnapshot. A reload builds a complete new snapshot before
swapping the reference, so a bad file never leaves a half-loaded
table behind and readers always see one consistent version.
"""

import logging
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Optional

from intake_triage.core.config import settings
from intake_triage.protocols.models import (
    ProtocolKey,
    ProtocolRecord,
    ProtocolSnapshot,
)
from intake_triage.rules.loader import load_yaml_file
from intake_triage.utils.time import utc_now

logger = logging.getLogger(__name__)


def load_snapshot(path: Path) -> ProtocolSnapshot:
    """Parse a protocol table file into a snapshot.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If a record is malformed or a key is duplicated
        KeyError: If a record misses a required field
    """
    document, content_hash = load_yaml_file(path)

    records: dict[ProtocolKey, ProtocolRecord] = {}
    for entry in document.get("protocols", []) or []:
        record = ProtocolRecord.from_dict(entry)
        if record.key in records:
            raise ValueError(
                f"Duplicate protocol for alert_type={record.alert_type} "
                f"severity={record.severity}"
            )
        records[record.key] = record

    return ProtocolSnapshot(
        version=str(document.get("version", "unknown")),
        content_hash=content_hash,
        loaded_at=utc_now(),
        records=MappingProxyType(records),
        source=str(path),
    )


class ProtocolRegistry:
    """Holds the current protocol snapshot and swaps it on reload."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path or settings.protocols_file)
        self._snapshot: Optional[ProtocolSnapshot] = None
        self._reload_lock = threading.Lock()

    @property
    def snapshot(self) -> ProtocolSnapshot:
        """Current snapshot, loading on first access."""
        snapshot = self._snapshot
        if snapshot is None:
            snapshot = self.reload()
        return snapshot

    def reload(self) -> ProtocolSnapshot:
        """Load the table from disk and swap it in.

        On failure the previous snapshot stays in place and the error
        propagates to the caller.
        """
        with self._reload_lock:
            try:
                snapshot = load_snapshot(self.path)
            except Exception:
                logger.exception(f"Failed to load crisis protocols from {self.path}")
                raise

            previous = self._snapshot
            self._snapshot = snapshot

        logger.info(
            f"Crisis protocols loaded version={snapshot.version} "
            f"hash={snapshot.content_hash[:12]} records={len(snapshot.records)} "
            f"previous={previous.version if previous else None}"
        )
        return snapshot

    def lookup(self, alert_type: str, severity: str) -> ProtocolRecord:
        """Record for a pair in the current snapshot.

        Raises:
            ConfigurationError: If no active record exists
        """
        return self.snapshot.lookup(alert_type, severity)
