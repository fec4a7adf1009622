"""
Contracts of the external collaborators the draft engine consumes.

Products, stores, clients and exchange rates are fetched elsewhere; the
engine only ever sees the snapshots these interfaces return.
"""
import logging
import threading
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

from pos_draft.models.product import ProductSnapshot, StockRef
from pos_draft.utils.number_format import to_decimal

logger = logging.getLogger(__name__)


class ProductCatalog(Protocol):
    def search(self, query: Optional[str] = None) -> List[ProductSnapshot]:
        ...


class StockSelector(Protocol):
    def choose(self, product_id: int) -> StockRef:
        ...


class ExchangeRateSource(Protocol):
    def latest_rate(self) -> Decimal:
        ...


class ClientDirectory(Protocol):
    def search(self, name: str) -> List[Dict[str, Any]]:
        ...

    def create(self, client_data: Dict[str, Any]) -> Dict[str, Any]:
        ...


class SaleSubmission(Protocol):
    def submit(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...


class ExchangeRateSnapshot:
    """
    Latest known exchange rate.

    Refreshed from outside (`update`); the draft reads it once when a
    payment switches to foreign currency and never mid-calculation.
    """

    def __init__(self, rate: Decimal):
        self._lock = threading.Lock()
        self._rate = to_decimal(rate)
        self.updated_at: Optional[datetime] = None

    def latest_rate(self) -> Decimal:
        with self._lock:
            return self._rate

    def update(self, rate) -> Decimal:
        value = to_decimal(rate)
        if value is None or value <= 0:
            raise ValueError(f"Invalid exchange rate: {rate!r}")
        with self._lock:
            self._rate = value
            self.updated_at = datetime.now()
        logger.info(f"[RATES] Exchange rate updated to {value}")
        return value
