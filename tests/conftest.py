"""Pytest configuration and shared fixtures."""

import asyncio
from typing import Any, Optional, Sequence

import pytest

from dex_assistant.data.models import AccountInfo, PriceBar, PriceQuote
from dex_assistant.errors import StepExecutionError
from dex_assistant.integrations.base import ContractGateway, PriceFeed, TxHandle
from dex_assistant.models.plan import (
    EntrySpec,
    MarketRegime,
    PlanAction,
    PositionSizing,
    RegimeType,
    SignalDirection,
    SignalType,
    StopLoss,
    TakeProfit,
    TakeProfitTarget,
    TradingPlan,
    TradingSignal,
    TrendDirection,
    VolatilityLevel,
)
from dex_assistant.utils.time import HOUR_MS

START_MS = 1_700_000_000_000  # 2023-11-14T22:13:20Z


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now

    def advance_minutes(self, minutes: float) -> int:
        return self.advance(int(minutes * 60_000))


class FakePriceFeed(PriceFeed):
    """In-memory quotes with manual push delivery."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.quotes: dict[str, PriceQuote] = {}
        self.failing: set[str] = set()
        self.subscribers: dict[str, list] = {}

    def set_quote(self, symbol: str, price: float, **fields: Any) -> PriceQuote:
        fields.setdefault("timestamp", self.clock())
        quote = PriceQuote(symbol=symbol, price=price, **fields)
        self.quotes[symbol] = quote
        return quote

    async def get_price(self, symbol: str) -> Optional[PriceQuote]:
        if symbol in self.failing:
            raise ConnectionError(f"feed unavailable for {symbol}")
        return self.quotes.get(symbol)

    def subscribe(self, symbol: str, callback):
        self.subscribers.setdefault(symbol, []).append(callback)

        def unsubscribe() -> None:
            self.subscribers[symbol].remove(callback)

        return unsubscribe

    async def push(self, quote: PriceQuote) -> None:
        self.quotes[quote.symbol] = quote
        for callback in list(self.subscribers.get(quote.symbol, [])):
            result = callback(quote)
            if asyncio.iscoroutine(result):
                await result


class FakeTx(TxHandle):
    def __init__(self, tx_hash: str, error: Optional[Exception] = None, hang: bool = False):
        self._hash = tx_hash
        self.error = error
        self.hang = hang

    @property
    def hash(self) -> str:
        return self._hash

    async def wait(self) -> Any:
        if self.hang:
            await asyncio.Event().wait()
        if self.error is not None:
            raise self.error
        return {"status": 1, "hash": self._hash}


class FakeGateway(ContractGateway):
    """Records every call; individual transaction types can be made to revert or hang."""

    def __init__(
        self,
        balance: float = 10_000.0,
        total_margin: float = 0.0,
        wallet_balance: float = 10_000.0,
        allowance: float = 10_000.0,
        positions: Optional[dict[str, float]] = None,
    ):
        self.account = AccountInfo(balance=balance, total_margin=total_margin, equity=balance)
        self.wallet_balance = wallet_balance
        self.allowance = allowance
        self.positions = dict(positions or {})
        self.calls: list[tuple[str, tuple]] = []
        self.reverting: set[str] = set()
        self.hanging: set[str] = set()

    def _tx(self, name: str, *args: Any) -> FakeTx:
        self.calls.append((name, args))
        error = StepExecutionError(f"{name} reverted", step_type=name) if name in self.reverting else None
        return FakeTx(f"0x{name}{len(self.calls):04d}", error=error, hang=name in self.hanging)

    @property
    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def get_account_info(self, address: str) -> AccountInfo:
        return self.account

    async def get_position(self, address: str, symbol: str) -> float:
        return self.positions.get(symbol, 0.0)

    async def check_allowance(self, address: str) -> float:
        return self.allowance

    async def get_wallet_balance(self, address: str) -> float:
        return self.wallet_balance

    async def approve(self, amount: float) -> TxHandle:
        return self._tx("approve", amount)

    async def deposit(self, amount: float) -> TxHandle:
        return self._tx("deposit", amount)

    async def withdraw(self, amount: float) -> TxHandle:
        return self._tx("withdraw", amount)

    async def open_position(self, symbol: str, size: float, leverage: float) -> TxHandle:
        return self._tx("open_position", symbol, size, leverage)

    async def close_position(self, symbol: str, size: float) -> TxHandle:
        return self._tx("close_position", symbol, size)


def make_bars(
    closes: Sequence[float],
    start: int = START_MS - 100 * HOUR_MS,
    interval: int = HOUR_MS,
    volume: float = 1000.0,
    spread: float = 0.5,
) -> list[PriceBar]:
    """Bars with the given closes, each spanning ``close +/- spread``."""
    return [
        PriceBar(
            timestamp=start + i * interval,
            open=close,
            high=close + spread,
            low=close - spread,
            close=close,
            volume=volume,
        )
        for i, close in enumerate(closes)
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def price_feed(clock: FakeClock) -> FakePriceFeed:
    return FakePriceFeed(clock)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


def make_plan(
    symbol: str = "BTC",
    direction: str = "long",
    price: float = 100.0,
    notional: float = 1000.0,
    leverage: float = 10.0,
    stop_percent: float = 2.0,
    take_profit_percent: float = 4.0,
    strategy: str = "trend_breakout",
    regime: RegimeType = RegimeType.TRENDING,
    volatility: VolatilityLevel = VolatilityLevel.MEDIUM,
    confidence: float = 80.0,
    plan_id: str = "plan-1",
    created_at: int = START_MS,
    action: Optional[PlanAction] = None,
) -> TradingPlan:
    """A sized plan whose stop and target sit at fixed percentages from ``price``."""
    long = direction == "long"
    sign = 1 if long else -1
    stop = price * (1 - sign * stop_percent / 100)
    target = price * (1 + sign * take_profit_percent / 100)
    return TradingPlan(
        id=plan_id,
        symbol=symbol,
        strategy=strategy,
        signal=TradingSignal(
            type=SignalType.ENTRY,
            direction=SignalDirection.LONG if long else SignalDirection.SHORT,
            strength=confidence,
            price=price,
            timestamp=created_at,
            reason="test signal",
        ),
        entry=EntrySpec(price=price),
        stop_loss=StopLoss(price=stop, percent=stop_percent),
        take_profit=TakeProfit(
            price=target,
            percent=take_profit_percent,
            targets=(TakeProfitTarget(price=target, percent=take_profit_percent),),
        ),
        position_sizing=PositionSizing(
            notional_size=notional,
            leverage=leverage,
            margin=notional / leverage,
            risk_amount=notional * stop_percent / 100,
            stop_loss_distance=price * stop_percent / 100,
        ),
        market_regime=MarketRegime(
            type=regime,
            strength=70.0,
            direction=TrendDirection.BULLISH if long else TrendDirection.BEARISH,
            volatility=volatility,
            confidence=70.0,
        ),
        risk_reward=take_profit_percent / stop_percent,
        confidence=confidence,
        timeframe="4h",
        created_at=created_at,
        action=action,
    )
