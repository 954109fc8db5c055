"""
DEX Assistant - Client-side trading strategy and risk-control core

Computes technical indicators and market regimes from price bars, turns rule-based
signals into sized trading plans, validates them against per-user risk limits,
executes approved plans as ordered on-chain steps and tracks realised performance.
"""

__version__ = "0.1.0"
__author__ = "DEX Assistant Team"
