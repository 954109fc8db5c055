#!/usr/bin/env python3
"""
Basic Usage Example - DEX Assistant

This script walks one user through the assistant with an in-memory price feed
and a paper contract gateway. It shows how to:
- Build the application context
- Create a risk profile
- Propose and risk-check a trading plan
- Execute the plan as on-chain steps
- Close the trade and read back strategy performance

Run: python examples/basic_usage.py
"""

import asyncio
import itertools
from typing import Any, Optional

from dex_assistant.app import build_context
from dex_assistant.data.history import StaticPriceHistory
from dex_assistant.data.models import AccountInfo, PriceBar, PriceQuote
from dex_assistant.integrations.base import ContractGateway, PriceFeed, TxHandle
from dex_assistant.integrations.notifications import StdoutNotificationSink
from dex_assistant.logging import configure_logging
from dex_assistant.performance.models import ExitReason
from dex_assistant.utils.time import HOUR_MS, system_clock

ADDRESS = "0x00000000000000000000000000000000000000a1"


class DemoPriceFeed(PriceFeed):
    """Quotes set by hand; no push delivery."""

    def __init__(self):
        self.quotes: dict[str, PriceQuote] = {}

    def set_price(self, symbol: str, price: float) -> None:
        self.quotes[symbol] = PriceQuote(symbol=symbol, price=price, timestamp=system_clock(),
                                         volume=250_000.0)

    async def get_price(self, symbol: str) -> Optional[PriceQuote]:
        return self.quotes.get(symbol)

    def subscribe(self, symbol, callback):
        return lambda: None


class PaperTx(TxHandle):
    def __init__(self, tx_hash: str):
        self._hash = tx_hash

    @property
    def hash(self) -> str:
        return self._hash

    async def wait(self) -> Any:
        await asyncio.sleep(0)
        return {"status": 1, "hash": self._hash}


class PaperGateway(ContractGateway):
    """Confirms every transaction immediately and keeps a position book."""

    def __init__(self, balance: float):
        self.balance = balance
        self.positions: dict[str, float] = {}
        self._nonce = itertools.count(1)

    def _tx(self) -> PaperTx:
        return PaperTx(f"0x{next(self._nonce):064x}")

    async def get_account_info(self, address: str) -> AccountInfo:
        return AccountInfo(balance=self.balance, equity=self.balance)

    async def get_position(self, address: str, symbol: str) -> float:
        return self.positions.get(symbol, 0.0)

    async def check_allowance(self, address: str) -> float:
        return 1_000_000.0

    async def get_wallet_balance(self, address: str) -> float:
        return 1_000_000.0

    async def approve(self, amount: float) -> TxHandle:
        return self._tx()

    async def deposit(self, amount: float) -> TxHandle:
        self.balance += amount
        return self._tx()

    async def withdraw(self, amount: float) -> TxHandle:
        self.balance -= amount
        return self._tx()

    async def open_position(self, symbol: str, size: float, leverage: float) -> TxHandle:
        self.positions[symbol] = self.positions.get(symbol, 0.0) + size
        return self._tx()

    async def close_position(self, symbol: str, size: float) -> TxHandle:
        self.positions[symbol] = self.positions.get(symbol, 0.0) + size
        return self._tx()


def selloff_bars(now_ms: int) -> list[PriceBar]:
    """Forty flat hours followed by a steady ten hour selloff."""
    closes = [3000.0] * 40 + [2940.0 - 60.0 * i for i in range(10)]
    start = now_ms - len(closes) * HOUR_MS
    return [
        PriceBar(timestamp=start + i * HOUR_MS, open=close, high=close + 15.0,
                 low=close - 15.0, close=close, volume=1_000.0)
        for i, close in enumerate(closes)
    ]


async def main() -> None:
    configure_logging(level="WARNING")

    feed = DemoPriceFeed()
    gateway = PaperGateway(balance=10_000.0)
    history = StaticPriceHistory({"ETH": selloff_bars(system_clock())})
    context = build_context(feed, gateway, history, sink=StdoutNotificationSink())

    print("🚀 DEX Assistant - basic usage")
    print("=" * 50)

    profile = context.create_risk_profile(ADDRESS, "medium").unwrap()
    print(f"👤 Profile created, risk score {profile.risk_score:.1f}")

    feed.set_price("ETH", 2400.0)
    proposed = (await context.propose_trade(ADDRESS, "ETH")).unwrap()
    if proposed is None:
        print("📭 No strategy qualified for ETH")
        return

    plan = proposed.final_plan
    assessment = proposed.assessment
    print(f"\n📋 Plan {plan.id}")
    print(f"   Strategy:    {plan.strategy} ({plan.confidence:.0f}% confidence)")
    print(f"   Entry:       {plan.entry.price:.2f}")
    print(f"   Stop loss:   {plan.stop_loss.price:.2f}")
    print(f"   Take profit: {plan.take_profit.price:.2f}")
    print(f"   Notional:    {plan.position_sizing.notional_size:.2f} at {plan.position_sizing.leverage:.0f}x")
    print(f"   Risk score:  {assessment.risk_score:.0f} (acceptable: {assessment.is_acceptable})")
    for violation in assessment.violations:
        print(f"   ⚠️  {violation.message}")

    if not assessment.is_acceptable:
        print("🛑 Plan rejected by risk manager")
        return

    result = await context.execute_trade(
        plan, ADDRESS, on_step_update=lambda status: print(f"   ⏳ {status.status.value} {status.progress:.0f}%")
    )
    if not result.ok:
        print(f"❌ Execution failed: {result.error}")
        return
    print(f"✅ Executed, {len(result.value.transactions)} transaction(s)")

    feed.set_price("ETH", plan.take_profit.price)
    context.record_exit(plan.id, plan.take_profit.price, exit_reason=ExitReason.TAKE_PROFIT).unwrap()

    performance = context.performance_tracker.get_strategy_performance(plan.strategy)
    print(f"\n📈 {performance.strategy_name}: {performance.total_trades} trade(s), "
          f"P&L {performance.total_pnl:.2f}, win rate {performance.win_rate:.0f}%")


if __name__ == "__main__":
    asyncio.run(main())
