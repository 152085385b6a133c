#!/usr/bin/env python3
"""Seed a buyer store with generated demo leads.

Examples
--------
Seed 50 leads into PostgreSQL (configured from POSTGRES_* variables)::

    python scripts/seed_buyers.py --count 50 --owner agent-1 --init-schema

Dry run against the in-memory store, printing audit events::

    python scripts/seed_buyers.py --count 5 --owner agent-1 --memory --console
"""

import argparse
import logging
import sys
from pathlib import Path

from buyer_leads import BuyerService, ValidationError
from buyer_leads.config import BuyerLeadsConfig
from buyer_leads.generators import BuyerGenerator
from buyer_leads.logging import setup_logging
from buyer_leads.sinks import ConsoleSink, JsonLinesSink, KafkaSink
from buyer_leads.store import InMemoryBuyerStore, PostgresBuyerStore

logger = logging.getLogger("seed_buyers")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed demo buyer leads")
    parser.add_argument("--count", type=int, default=25, help="Number of leads to create")
    parser.add_argument("--owner", required=True, help="Owner user id for created leads")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--postgres-url", default=None, help="Override POSTGRES_* settings")
    parser.add_argument("--memory", action="store_true", help="Use the in-memory store")
    parser.add_argument("--init-schema", action="store_true", help="Create tables first")
    parser.add_argument("--console", action="store_true", help="Print audit events")
    parser.add_argument("--jsonl", type=Path, default=None, help="Append audit events to a file")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = BuyerLeadsConfig.from_env()
    setup_logging(args.log_level or config.log_level, config.log_format)

    if args.memory:
        store = InMemoryBuyerStore()
    else:
        store = PostgresBuyerStore(args.postgres_url or config.postgres)
        if args.init_schema:
            store.create_schema()

    sinks = []
    if args.console:
        sinks.append(ConsoleSink(pretty=False))
    jsonl_path = args.jsonl or config.audit.jsonl_path
    if jsonl_path:
        sinks.append(JsonLinesSink(jsonl_path))
    if config.kafka:
        sinks.append(KafkaSink(config.kafka, topic=config.audit.topic))

    service = BuyerService(store, sinks=sinks, audit=config.audit)
    generator = BuyerGenerator(seed=args.seed)

    created = rejected = 0
    try:
        for candidate in generator.generate_batch(args.count):
            try:
                service.create_record(candidate, args.owner)
                created += 1
            except ValidationError as e:
                rejected += 1
                logger.warning("Generated candidate rejected: %s", e)
    finally:
        for sink in sinks:
            sink.close()
        store.close()

    logger.info("Seeding complete: created=%d, rejected=%d", created, rejected)
    return 0 if rejected == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
