from decimal import Decimal
from typing import Dict, List, Optional

from app.core.errors import AppError, NotFoundError, ValidationError
from app.core.result import Err, Ok, Result
from app.domain.values import Money, Sku

# Catalogue prices, quoted in whatever currency the order uses
DEFAULT_PRICES: Dict[str, Decimal] = {
    "BOOK001": Decimal("29.99"),
    "BOOK002": Decimal("39.99"),
    "GAME001": Decimal("59.99"),
    "GAME002": Decimal("69.99"),
    "FOOD001": Decimal("9.99"),
    "FOOD002": Decimal("14.99"),
}


class StaticPricingService:
    """In-memory price table."""

    def __init__(self, prices: Optional[Dict[str, Decimal]] = None):
        self._prices = dict(DEFAULT_PRICES if prices is None else prices)

    async def get_current_price(self, sku: Sku, currency: str = "EUR") -> Result[Money, AppError]:
        price = self._prices.get(str(sku))
        if price is None:
            return Err(NotFoundError(f"Price not found for SKU: {sku}"))
        try:
            return Ok(Money.create(price, currency))
        except ValueError as e:
            return Err(ValidationError(str(e)))

    def set_price_for_sku(self, sku: str, price: Decimal) -> None:
        self._prices[sku] = Decimal(str(price))

    def clear_prices(self) -> None:
        self._prices.clear()

    @property
    def available_skus(self) -> List[str]:
        return list(self._prices)
