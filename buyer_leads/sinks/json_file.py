"""JSON Lines sink appending audit events to a file."""

import json
import logging
from pathlib import Path
from typing import IO

from buyer_leads.exceptions import SinkError
from buyer_leads.models import Event
from buyer_leads.sinks.serialization import to_dict

logger = logging.getLogger(__name__)


class JsonLinesSink:
    """Append one JSON document per audit event."""

    def __init__(self, path: str | Path) -> None:
        """Initialize JSON Lines sink.

        Parameters
        ----------
        path : str | Path
            File to append to. Parent directories are created.
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file: IO[str] | None = None
        self.count = 0

    def publish(self, event: Event) -> None:
        """Append an event and flush it to disk."""
        try:
            if self._file is None:
                self._file = open(self.path, "a", encoding="utf-8")
            self._file.write(json.dumps(to_dict(event), ensure_ascii=False, default=str) + "\n")
            self._file.flush()
        except OSError as e:
            raise SinkError(f"Failed to write audit event to {self.path}: {e}") from e
        self.count += 1

    def close(self) -> None:
        """Close the file."""
        if self._file is not None:
            self._file.close()
            self._file = None
        logger.info("Audit events written to %s: %d", self.path, self.count)
