"""Buyer candidate generator for seeding demo data."""

from __future__ import annotations

from typing import Any, Iterator

from buyer_leads.generators.base import BaseGenerator
from buyer_leads.models import BHK_PROPERTY_TYPES, Bhk, City, PropertyType, Purpose, Source, Status, Timeline


class BuyerGenerator(BaseGenerator):
    """Generate buyer candidates that pass validation."""

    TAG_POOL = ("hot", "investor", "nri", "first-home", "loan-approved", "corner-plot", "urgent")

    # Budget bounds in lakh (100 000 INR)
    BUDGET_RANGE_LAKH = (20, 500)

    def generate(self) -> dict[str, Any]:
        """Generate a single candidate.

        Returns
        -------
        dict[str, Any]
            Candidate keyed by attribute name with plain enum values.
        """
        return self._generate_one()

    def generate_batch(self, count: int) -> Iterator[dict[str, Any]]:
        """Generate multiple candidates.

        Parameters
        ----------
        count : int
            Number of candidates to generate.

        Yields
        ------
        dict[str, Any]
            Generated candidates.
        """
        for _ in range(count):
            yield self._generate_one()

    def _generate_one(self) -> dict[str, Any]:
        fake = self.fake

        property_type = fake.random_element([*PropertyType, None])
        bhk = fake.random_element(list(Bhk)) if property_type in BHK_PROPERTY_TYPES else None

        budget_min = budget_max = None
        if fake.boolean(chance_of_getting_true=80):
            low, high = self.BUDGET_RANGE_LAKH
            budget_min = fake.random_int(low, high) * 100_000
            budget_max = budget_min + fake.random_int(0, 100) * 100_000

        tag_count = fake.random_int(0, 3)
        tags = list(fake.random_elements(self.TAG_POOL, length=tag_count, unique=True)) if tag_count else []

        return {
            "full_name": fake.name(),
            "email": fake.email() if fake.boolean(chance_of_getting_true=70) else None,
            "phone": fake.numerify(fake.random_element(["9#########", "8#########", "7#########"])),
            "city": fake.random_element(list(City)).value,
            "property_type": property_type.value if property_type else None,
            "bhk": bhk.value if bhk else None,
            "purpose": fake.random_element(list(Purpose)).value,
            "budget_min": budget_min,
            "budget_max": budget_max,
            "timeline": fake.random_element([*(t.value for t in Timeline), None]),
            "source": fake.random_element(list(Source)).value,
            "status": fake.random_element(list(Status)).value,
            "notes": fake.sentence(nb_words=12) if fake.boolean(chance_of_getting_true=40) else None,
            "tags": tags,
        }
