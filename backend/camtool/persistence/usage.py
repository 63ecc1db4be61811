"""
Per-preset usage counters.

One record per preset key: when it was first and last applied and how
often. Records are created on first apply and dropped with their preset.
The file is flushed by a recurring timer, only when something changed.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import LoadError, SaveError
from .json_files import backup_path, load_json, save_json

logger = logging.getLogger(__name__)


class UsageRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    first: datetime = Field(alias="First")
    last: datetime = Field(alias="Last")
    total: int = Field(default=0, alias="Total", ge=0)


class UsageTracker:
    """
    In-memory usage records with explicit load/save.

    Args:
        path: Location of usage.json
        clock: Returns the current time (injectable for tests)
    """

    def __init__(self, path: Path, clock: Optional[Callable[[], datetime]] = None):
        self.path = Path(path)
        self._clock = clock or datetime.now
        self._records: Dict[str, UsageRecord] = {}
        self.dirty = False

    def bump(self, key: str) -> UsageRecord:
        """Record one use of `key`."""
        now = self._clock()
        record = self._records.get(key)
        if record is None:
            record = UsageRecord(first=now, last=now, total=1)
            self._records[key] = record
        else:
            record.last = now
            record.total += 1
        self.dirty = True
        return record

    def get(self, key: str) -> Optional[UsageRecord]:
        return self._records.get(key)

    def remove(self, key: str) -> bool:
        if self._records.pop(key, None) is None:
            return False
        self.dirty = True
        return True

    def records(self) -> Dict[str, UsageRecord]:
        return dict(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def load(self) -> bool:
        """
        Replace in-memory records with the file content.

        A missing file is not an error (first run). Invalid entries are
        skipped individually.

        Returns:
            True if a file was read
        """
        if not self.path.exists() and not backup_path(self.path).exists():
            return False

        try:
            data = load_json(self.path)
        except LoadError as e:
            logger.error(f"Usage stats not loaded: {e}")
            return False

        if not isinstance(data, dict):
            logger.error(f"Usage stats not loaded: expected an object in {self.path}")
            return False

        self._records = {}
        for key, raw in data.items():
            try:
                self._records[key] = UsageRecord.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipped usage record '{key}': {e}")
        self.dirty = False
        logger.info(f"Loaded {len(self._records)} usage records")
        return True

    def save(self, force: bool = False) -> bool:
        """
        Write records if they changed since the last load/save.

        Returns:
            True if the file was written
        """
        if not self.dirty and not force:
            return False

        data = {key: r.model_dump(mode="json", by_alias=True) for key, r in self._records.items()}
        try:
            save_json(self.path, data)
        except SaveError as e:
            logger.error(f"Usage stats not saved: {e}")
            return False

        self.dirty = False
        logger.debug(f"Saved {len(data)} usage records")
        return True

    def flush(self) -> None:
        """Timer callback: save if dirty."""
        self.save()
