"""
Collaborator interfaces consumed by the assistant.

The price feed, the contract gateway and notification sinks are implemented by
the surrounding application. The core only depends on these abstractions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from ..data.models import AccountInfo, PriceQuote

logger = structlog.get_logger(__name__)

QuoteCallback = Callable[[PriceQuote], Any]
Unsubscribe = Callable[[], None]


class PriceFeed(ABC):
    """Market data source."""

    @abstractmethod
    async def get_price(self, symbol: str) -> Optional[PriceQuote]:
        """Latest quote, or None when the feed has nothing for the symbol."""

    @abstractmethod
    def subscribe(self, symbol: str, callback: QuoteCallback) -> Unsubscribe:
        """
        Push quotes for ``symbol`` to ``callback``.

        The callback may return an awaitable; the feed is expected to schedule
        it on the running loop. Returns a function that cancels the subscription.
        """


class TxHandle(ABC):
    """Submitted transaction."""

    @property
    @abstractmethod
    def hash(self) -> str:
        """Transaction hash."""

    @abstractmethod
    async def wait(self) -> Any:
        """Resolve once the transaction is confirmed; raise if it reverted."""


class ContractGateway(ABC):
    """Wallet and trading contract access."""

    @abstractmethod
    async def get_account_info(self, address: str) -> AccountInfo:
        """Balance and margin held by the trading contract."""

    @abstractmethod
    async def get_position(self, address: str, symbol: str) -> float:
        """Signed position size, positive long and negative short."""

    @abstractmethod
    async def check_allowance(self, address: str) -> float:
        """Collateral token allowance granted to the trading contract."""

    @abstractmethod
    async def get_wallet_balance(self, address: str) -> float:
        """Collateral token balance in the user's wallet."""

    @abstractmethod
    async def approve(self, amount: float) -> TxHandle:
        ...

    @abstractmethod
    async def deposit(self, amount: float) -> TxHandle:
        ...

    @abstractmethod
    async def withdraw(self, amount: float) -> TxHandle:
        ...

    @abstractmethod
    async def open_position(self, symbol: str, size: float, leverage: float) -> TxHandle:
        ...

    @abstractmethod
    async def close_position(self, symbol: str, size: float) -> TxHandle:
        ...


class NotificationPriority(str, Enum):
    """Presentation priority for user notifications."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Notification:
    """A user-facing message."""
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    source: str = "assistant"
    details: dict[str, Any] = field(default_factory=dict)


class NotificationSink(ABC):
    """Fire-and-forget presentation of notifications (toasts, push messages)."""

    def __init__(self, name: str):
        self.name = name
        self._delivery_count = 0
        self._error_count = 0

    @abstractmethod
    def deliver(self, notification: Notification) -> None:
        """Present one notification. May raise."""

    def notify(self, notification: Notification) -> None:
        """
        Present a notification without ever propagating a failure.

        The assistant never blocks on or inspects the outcome; failures are
        logged and counted.
        """
        try:
            self.deliver(notification)
            self._delivery_count += 1
        except Exception as e:
            self._error_count += 1
            logger.error(
                "Notification delivery failed",
                sink=self.name,
                title=notification.title,
                error=str(e),
                error_type=type(e).__name__,
            )

    def get_stats(self) -> dict[str, Any]:
        """Get delivery statistics."""
        return {
            "name": self.name,
            "delivery_count": self._delivery_count,
            "error_count": self._error_count,
            "success_rate": (
                self._delivery_count / (self._delivery_count + self._error_count)
                if (self._delivery_count + self._error_count) > 0 else 0.0
            )
        }

    def reset_stats(self) -> None:
        self._delivery_count = 0
        self._error_count = 0
