"""
Opportunity radar.

Keeps a rolling ``MarketSnapshot`` per tracked symbol and runs the
opportunity detectors whenever a snapshot receives a new quote. Quotes arrive
from two paths: a periodic poll (full scan on start, incremental scans after
that) and push subscriptions on the price feed. Both paths go through the
same per-symbol lock, and a quote that is not newer than the snapshot's last
quote is dropped.

Alerts pass the gates in this order: per-symbol cooldown, user filters,
minimum confidence, duplicate (symbol, type) suppression, hourly cap.
"""

import asyncio
from collections import defaultdict
from typing import Any, Optional

import structlog

from ..config.defaults import IndicatorParams, RadarParams, RadarPreferences
from ..config.loader import dataclass_to_dict, deep_merge, radar_preferences_from_dict
from ..config.validation import ConfigValidator
from ..data.history import PriceHistoryProvider
from ..data.models import PriceQuote
from ..errors import InvalidParameterError
from ..integrations.base import (
    Notification,
    NotificationPriority,
    NotificationSink,
    PriceFeed,
    Unsubscribe,
)
from ..logging.config import get_gating_logger, log_gate_decision
from ..metrics.calculator import IndicatorCalculator
from ..persistence.repository import InMemoryRepository, Repository
from ..strategy.regime import analyze_market_regime
from ..utils.time import HOUR_MS, Clock, system_clock, within_time_window
from .detectors import DETECTORS
from .models import MarketSnapshot, OpportunityAlert

logger = structlog.get_logger(__name__)
gate_logger = get_gating_logger(__name__)


class OpportunityRadar:
    """Background scanner that turns market snapshots into opportunity alerts."""

    def __init__(
        self,
        price_feed: PriceFeed,
        history: PriceHistoryProvider,
        params: Optional[RadarParams] = None,
        preferences: Optional[RadarPreferences] = None,
        indicator_params: Optional[IndicatorParams] = None,
        sink: Optional[NotificationSink] = None,
        snapshots: Optional[Repository[str, MarketSnapshot]] = None,
        alerts: Optional[Repository[str, OpportunityAlert]] = None,
        clock: Clock = system_clock,
    ):
        self.price_feed = price_feed
        self.history = history
        self.params = params or RadarParams()
        self.preferences = preferences or RadarPreferences(enabled_symbols=self.params.symbols)
        self.calculator = IndicatorCalculator(indicator_params)
        self.sink = sink
        self.snapshots = snapshots if snapshots is not None else InMemoryRepository()
        self.active_alerts = alerts if alerts is not None else InMemoryRepository()
        self.clock = clock

        self._alert_history: list[OpportunityAlert] = []
        self._last_alert_time: dict[str, int] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._unsubscribers: list[Unsubscribe] = []
        self._scan_task: Optional[asyncio.Task] = None
        self._rotation = 0
        self._running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_scanning(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Full scan, then the periodic incremental loop and push subscriptions."""
        if self._running:
            return

        self._running = True
        logger.info("Starting opportunity radar", symbols=len(self.preferences.enabled_symbols))

        await self.full_scan()
        self._scan_task = asyncio.create_task(self._scan_loop())

        for symbol in self.preferences.enabled_symbols:
            self._unsubscribers.append(self.price_feed.subscribe(symbol, self._on_pushed_quote))

        logger.info("Opportunity radar started", symbols=len(self.preferences.enabled_symbols))

    async def stop(self) -> None:
        """Cancel the loop, drop subscriptions and clear active alerts."""
        self._running = False

        if self._scan_task is not None:
            self._scan_task.cancel()
            try:
                await self._scan_task
            except asyncio.CancelledError:
                pass
            self._scan_task = None

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        self.active_alerts.clear()
        logger.info("Opportunity radar stopped")

    async def _scan_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.params.scan_interval_seconds)
            try:
                await self.incremental_scan()
            except Exception as e:
                logger.error("Incremental scan failed", error=str(e), error_type=type(e).__name__)

    async def _on_pushed_quote(self, quote: PriceQuote) -> None:
        if not self._running or not self.is_within_trading_hours():
            return
        try:
            await self.process_quote(quote.symbol, quote)
        except Exception as e:
            logger.error("Pushed quote processing failed", symbol=quote.symbol,
                         error=str(e), error_type=type(e).__name__)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def full_scan(self) -> list[OpportunityAlert]:
        """Scan every enabled symbol."""
        if not self.is_within_trading_hours():
            logger.info("Outside trading hours, skipping scan")
            return []

        emitted = await self._scan_symbols(self.preferences.enabled_symbols)
        self.cleanup_expired_alerts()
        logger.info("Full market scan completed", emitted=len(emitted),
                    active_alerts=len(self.active_alerts))
        return emitted

    async def incremental_scan(self) -> list[OpportunityAlert]:
        """Scan recently alerting symbols plus a rotating handful of others."""
        if not self.is_within_trading_hours():
            return []

        emitted = await self._scan_symbols(self.select_priority_symbols())
        self.cleanup_expired_alerts()
        return emitted

    async def _scan_symbols(self, symbols) -> list[OpportunityAlert]:
        emitted = []
        for symbol in symbols:
            try:
                emitted.extend(await self.scan_symbol(symbol))
            except Exception as e:
                logger.error("Symbol scan failed", symbol=symbol,
                             error=str(e), error_type=type(e).__name__)
        return emitted

    async def scan_symbol(self, symbol: str) -> list[OpportunityAlert]:
        quote = await self.price_feed.get_price(symbol)
        if quote is None:
            logger.warning("No quote for symbol", symbol=symbol)
            return []
        return await self.process_quote(symbol, quote)

    def select_priority_symbols(self) -> list[str]:
        now = self.clock()
        recent = []
        for alert in self._alert_history:
            if now - alert.timestamp < HOUR_MS and alert.symbol not in recent:
                recent.append(alert.symbol)

        others = [s for s in self.preferences.enabled_symbols if s not in recent]
        extra = []
        if others:
            count = min(self.params.incremental_extra_symbols, len(others))
            start = self._rotation % len(others)
            extra = [others[(start + i) % len(others)] for i in range(count)]
            self._rotation = start + count

        return recent + extra

    async def process_quote(self, symbol: str, quote: PriceQuote) -> list[OpportunityAlert]:
        """Update the symbol's snapshot with ``quote`` and emit any qualifying alerts."""
        async with self._locks[symbol]:
            snapshot = await self._update_snapshot(symbol, quote)
            if snapshot is None:
                return []
            return self._evaluate(snapshot, quote)

    async def _update_snapshot(self, symbol: str, quote: PriceQuote) -> Optional[MarketSnapshot]:
        """Append ``quote`` as a bar; None when the quote is stale."""
        now = self.clock()
        snapshot = self.snapshots.get(symbol)

        if snapshot is not None and quote.timestamp <= snapshot.last_quote_timestamp:
            logger.debug("Stale quote dropped", symbol=symbol, quote_timestamp=quote.timestamp,
                         last_quote_timestamp=snapshot.last_quote_timestamp)
            return None

        if snapshot is None:
            bars = await self.history.get_bars(symbol, quote.price, now)
        else:
            bars = list(snapshot.bars)
        bars.append(quote.to_bar())
        bars = bars[-self.params.max_history_length:]

        indicators = self.calculator.compute(bars)
        regime = analyze_market_regime(bars, indicators)

        snapshot = MarketSnapshot(
            symbol=symbol,
            bars=bars,
            indicators=indicators,
            regime=regime,
            volume_24h=quote.volume,
            price_change_24h=quote.change_24h,
            last_update=now,
            last_quote_timestamp=quote.timestamp,
            updates=(snapshot.updates + 1) if snapshot else 1,
        )
        self.snapshots.put(symbol, snapshot)
        return snapshot

    def _run_detectors(self, snapshot: MarketSnapshot, quote: PriceQuote,
                       strategies) -> list[OpportunityAlert]:
        now = self.clock()
        found = []
        for name in strategies:
            detector = DETECTORS.get(name)
            if detector is None:
                continue
            try:
                alert = detector(snapshot, quote, now)
            except Exception as e:
                logger.error("Detector failed", detector=name, symbol=snapshot.symbol,
                             error=str(e), error_type=type(e).__name__)
                continue
            if alert is not None:
                found.append(alert)
        return found

    def _evaluate(self, snapshot: MarketSnapshot, quote: PriceQuote) -> list[OpportunityAlert]:
        symbol = snapshot.symbol
        now = self.clock()
        prefs = self.preferences

        cooldown_ms = int(self.params.alert_cooldown_seconds * 1000)
        since_last = now - self._last_alert_time.get(symbol, -cooldown_ms)
        if since_last < cooldown_ms:
            log_gate_decision(gate_logger, "alert_cooldown", False, symbol,
                              f"last alert {since_last // 1000}s ago")
            return []

        if not self.passes_filters(quote):
            log_gate_decision(gate_logger, "user_filters", False, symbol,
                              "quote outside volume or price change filters",
                              {"volume": quote.volume, "change_24h": quote.change_24h})
            return []

        emitted = []
        for alert in self._run_detectors(snapshot, quote, prefs.enabled_strategies):
            if alert.confidence < prefs.min_confidence:
                log_gate_decision(gate_logger, "alert_min_confidence", False, alert.id,
                                  f"confidence {alert.confidence:.1f} below {prefs.min_confidence:.1f}")
                continue
            if self._register_alert(alert):
                emitted.append(alert)
        return emitted

    def _register_alert(self, alert: OpportunityAlert) -> bool:
        now = self.clock()
        self.cleanup_expired_alerts()

        duplicate = any(
            a.symbol == alert.symbol and a.type == alert.type
            for a in self.active_alerts.values()
        )
        if duplicate:
            log_gate_decision(gate_logger, "alert_duplicate", False, alert.id,
                              f"active {alert.type.value} alert already exists for {alert.symbol}")
            return False

        recent = sum(1 for a in self._alert_history if now - a.timestamp < HOUR_MS)
        if recent >= self.preferences.max_alerts_per_hour:
            log_gate_decision(gate_logger, "alert_hourly_cap", False, alert.id,
                              f"alert limit reached ({self.preferences.max_alerts_per_hour}/hour)")
            return False

        self.active_alerts.put(alert.id, alert)
        self._alert_history.append(alert)
        self._last_alert_time[alert.symbol] = alert.timestamp

        log_gate_decision(gate_logger, "alert_emitted", True, alert.id,
                          alert.message, {"confidence": round(alert.confidence, 1),
                                          "priority": alert.priority.value})
        self._send(alert)
        return True

    def _send(self, alert: OpportunityAlert) -> None:
        if self.sink is None:
            return
        self.sink.notify(Notification(
            title=f"{alert.symbol} {alert.type.value} opportunity",
            message=alert.message,
            priority=NotificationPriority(alert.priority.value),
            source="opportunity_radar",
            details=alert.to_dict(),
        ))

    async def force_scan_symbol(self, symbol: str) -> list[OpportunityAlert]:
        """
        Run every detector for ``symbol`` right now.

        Only the confidence minimum applies; results are returned, not
        registered as active alerts.
        """
        quote = await self.price_feed.get_price(symbol)
        if quote is None:
            return []

        async with self._locks[symbol]:
            await self._update_snapshot(symbol, quote)
            snapshot = self.snapshots.get(symbol)
            if snapshot is None:
                return []
            found = self._run_detectors(snapshot, quote, DETECTORS)

        return [a for a in found if a.confidence >= self.preferences.min_confidence]

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def is_within_trading_hours(self) -> bool:
        """True when the trading-hours window is disabled or contains now (UTC)."""
        hours = self.preferences.trading_hours
        if not hours.enabled:
            return True
        return within_time_window(self.clock(), hours.start, hours.end)

    def passes_filters(self, quote: PriceQuote) -> bool:
        filters = self.preferences.filters
        change = abs(quote.change_24h)
        return (quote.volume >= filters.min_volume
                and filters.min_price_change <= change <= filters.max_price_change)

    # ------------------------------------------------------------------
    # Alerts and state
    # ------------------------------------------------------------------

    def cleanup_expired_alerts(self) -> None:
        now = self.clock()
        for alert_id, alert in self.active_alerts.items():
            if alert.is_expired(now):
                self.active_alerts.delete(alert_id)

        retention_ms = int(self.params.history_retention_hours * HOUR_MS)
        self._alert_history = [a for a in self._alert_history if now - a.timestamp < retention_ms]

    def get_active_alerts(self) -> list[OpportunityAlert]:
        """Unexpired alerts, highest priority first."""
        self.cleanup_expired_alerts()
        return sorted(self.active_alerts.values(), key=lambda a: a.priority.rank, reverse=True)

    def get_alert_history(self, hours: float = 24) -> list[OpportunityAlert]:
        cutoff = self.clock() - int(hours * HOUR_MS)
        return sorted((a for a in self._alert_history if a.timestamp >= cutoff),
                      key=lambda a: a.timestamp, reverse=True)

    def dismiss_alert(self, alert_id: str) -> bool:
        return self.active_alerts.delete(alert_id)

    def get_market_snapshots(self) -> dict[str, MarketSnapshot]:
        return dict(self.snapshots.items())

    def update_preferences(self, **changes: Any) -> RadarPreferences:
        """
        Merge preference changes.

        Raises:
            InvalidParameterError: If the changes fail validation
        """
        errors = ConfigValidator.validate_radar_preferences(changes)
        if errors:
            raise InvalidParameterError("Invalid radar preferences", errors)

        merged = deep_merge(dataclass_to_dict(self.preferences), changes)
        self.preferences = radar_preferences_from_dict(merged)
        logger.info("Radar preferences updated", fields=sorted(changes))
        return self.preferences

    def get_preferences(self) -> RadarPreferences:
        return self.preferences

    def get_status(self) -> dict[str, Any]:
        updates = [s.last_update for s in self.snapshots.values()]
        return {
            "is_scanning": self._running,
            "active_alerts": len(self.active_alerts),
            "monitored_symbols": len(self.preferences.enabled_symbols),
            "last_scan_time": max(updates) if updates else 0,
        }
