"""Demo data generators."""

from buyer_leads.generators.base import BaseGenerator
from buyer_leads.generators.buyer import BuyerGenerator

__all__ = ["BaseGenerator", "BuyerGenerator"]
