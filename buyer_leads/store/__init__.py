"""Buyer storage backends."""

from buyer_leads.store.base import BuyerStore, BuyerTransaction
from buyer_leads.store.memory import InMemoryBuyerStore
from buyer_leads.store.postgres import PostgresBuyerStore

__all__ = ["BuyerStore", "BuyerTransaction", "InMemoryBuyerStore", "PostgresBuyerStore"]
