"""Plan lifecycle records, realized pnl and strategy analytics."""

from .models import (
    AlertKind,
    AlertSeverity,
    DashboardOverview,
    ExecutionRecordStatus,
    ExitReason,
    MarketConditionPerformance,
    PerformanceAlert,
    PerformanceDashboard,
    RealTimePosition,
    StrategyMetrics,
    StrategyPerformance,
    StreakType,
    TradeSummary,
    TradingPlanExecution,
)
from .tracker import (
    EXPORT_VERSION,
    PerformanceTracker,
    compute_metrics,
    compute_strategy_performance,
    drawdown_percentages,
    max_drawdown_amount,
    profit_factor,
)

__all__ = [
    "PerformanceTracker",
    "EXPORT_VERSION",
    "compute_metrics",
    "compute_strategy_performance",
    "drawdown_percentages",
    "max_drawdown_amount",
    "profit_factor",
    "AlertKind",
    "AlertSeverity",
    "DashboardOverview",
    "ExecutionRecordStatus",
    "ExitReason",
    "MarketConditionPerformance",
    "PerformanceAlert",
    "PerformanceDashboard",
    "RealTimePosition",
    "StrategyMetrics",
    "StrategyPerformance",
    "StreakType",
    "TradeSummary",
    "TradingPlanExecution",
]
