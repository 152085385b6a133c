"""Output sinks for audit events."""

from buyer_leads.sinks.console import ConsoleSink
from buyer_leads.sinks.json_file import JsonLinesSink
from buyer_leads.sinks.kafka import KafkaSink

__all__ = ["ConsoleSink", "JsonLinesSink", "KafkaSink"]
