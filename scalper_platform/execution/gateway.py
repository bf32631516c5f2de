"""
ORDER GATEWAY CONTRACT
======================

The order-management system the strategy talks to. Implementations live
with the host platform; the strategy only depends on this interface.

• All calls are synchronous request / acknowledge
• No retry or timeout logic here: the next update cycle is the retry
• get_order_by_id returns None for unknown ids
• flatten_position closes the net position and cancels its protective children
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from scalper_platform.domain.business_models import OrderRecord


class GatewayError(Exception):
    """Raised by a gateway when a request is refused or cannot be completed."""


@dataclass(frozen=True)
class BracketSubmission:
    """Ids of the two OCO parent legs (A = buy limit, B = sell limit)."""
    leg_a_id: int
    leg_b_id: int


class OrderGateway(ABC):

    @abstractmethod
    def submit_oco_bracket(
        self,
        buy_price: float,
        sell_price: float,
        qty: int,
        stop_offset: float,
        target_offset: float,
    ) -> BracketSubmission:
        """
        Submit one OCO group of two bracketed limit parents.

        Stop / target are offsets from the eventual fill price of whichever
        parent fills. Raises GatewayError on refusal.
        """

    @abstractmethod
    def cancel_order(self, order_id: int) -> None:
        ...

    @abstractmethod
    def get_order_by_id(self, order_id: int) -> Optional[OrderRecord]:
        ...

    @abstractmethod
    def list_orders(self) -> List[OrderRecord]:
        ...

    @abstractmethod
    def get_position(self) -> int:
        """Signed net position quantity."""

    @abstractmethod
    def flatten_position(self) -> None:
        ...
