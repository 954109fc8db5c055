"""
Utility functions shared across the assistant.

Time semantics: quote timestamps from the price feed are authoritative for
snapshot ordering; the injected clock drives cooldowns, expiries and timers.
"""
