"""Console sink for debugging and development."""

import json
from typing import Any

from buyer_leads.exceptions import SinkError
from buyer_leads.models import Event
from buyer_leads.sinks.serialization import to_dict


class ConsoleSink:
    """Print audit events to stdout."""

    def __init__(self, pretty: bool = True) -> None:
        """Initialize console sink.

        Parameters
        ----------
        pretty : bool
            Pretty-print JSON output.
        """
        self.pretty = pretty
        self._counts: dict[str, int] = {}

    def publish(self, event: Event) -> None:
        """Print a single event."""
        data: dict[str, Any] = to_dict(event)
        try:
            if self.pretty:
                print(json.dumps(data, indent=2, ensure_ascii=False, default=str))
            else:
                print(json.dumps(data, ensure_ascii=False, default=str))
        except OSError as e:
            raise SinkError(f"Failed to print {event.event_type} for {event.subject}: {e}") from e

        self._counts[event.event_type] = self._counts.get(event.event_type, 0) + 1

    def close(self) -> None:
        """Print summary."""
        print(f"\n{'='*60}")
        print("Console Sink Summary")
        print("=" * 60)
        for event_type, count in self._counts.items():
            print(f"  {event_type}: {count} events")
