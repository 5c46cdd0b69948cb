"""Investment metrics for property listings."""

import logging
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional

from models.constants import DEFAULT_MONTHLY_RENT, MONTHLY_RENT_BY_BEDROOMS
from models.property import PropertyRecord

logger = logging.getLogger(__name__)


def estimate_yield(
    price: int,
    bedrooms: int,
    rent_table: Optional[Mapping[int, int]] = None,
    default_rent: int = DEFAULT_MONTHLY_RENT,
) -> Optional[float]:
    """
    Estimate gross rental yield as a percentage of price.

    yield = monthly_rent(bedrooms) * 12 / price * 100

    This is a lookup-table estimate, not observed market data.

    Args:
        price: Asking price in GBP
        bedrooms: Bedroom count (0 = studio/unknown)
        rent_table: Monthly rent by bedroom count
        default_rent: Rent for bedroom counts outside the table

    Returns:
        Yield percentage, or None when price is not positive
    """
    if not price or price <= 0:
        return None
    table = MONTHLY_RENT_BY_BEDROOMS if rent_table is None else rent_table
    monthly_rent = table.get(bedrooms, default_rent)
    return (monthly_rent * 12 * 100) / price


class InvestmentAnalyzer:
    """Attach derived metrics to scraped property records."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the analyzer with configuration.

        Args:
            config: Analysis section of config.json; may override
                rent_by_bedrooms and default_monthly_rent
        """
        self.config = config or {}

        # JSON object keys arrive as strings
        table = self.config.get("rent_by_bedrooms", MONTHLY_RENT_BY_BEDROOMS)
        self.rent_table: Dict[int, int] = {int(k): int(v) for k, v in table.items()}
        self.default_rent = int(self.config.get("default_monthly_rent", DEFAULT_MONTHLY_RENT))

    def monthly_rent(self, bedrooms: int) -> int:
        """Estimated monthly rent for a bedroom count."""
        return self.rent_table.get(bedrooms, self.default_rent)

    def estimate_yield(self, price: int, bedrooms: int) -> Optional[float]:
        """Gross yield using this analyzer's rent table."""
        return estimate_yield(price, bedrooms, self.rent_table, self.default_rent)

    def analyze_property(self, record: PropertyRecord) -> PropertyRecord:
        """
        Recompute the estimated yield from the record's price and bedrooms.

        Args:
            record: The property to analyze

        Returns:
            A copy of the record with estimated_yield populated
        """
        value = self.estimate_yield(record.price, record.bedrooms)
        if value is None:
            logger.warning(f"Cannot estimate yield for {record.id}: price={record.price}")
        return replace(record, estimated_yield=value)
