#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path
from typing import List

import yaml

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dex_assistant.config.loader import ConfigLoader
from dex_assistant.config.validation import ConfigValidator, ValidationError


def validate_symbol_config(loader: ConfigLoader, symbol: str) -> List[ValidationError]:
    """Validate the merged configuration for a specific symbol."""
    config = loader.merge_config(symbol)
    return ConfigValidator.validate_config(config)


def configured_symbols(loader: ConfigLoader) -> List[str]:
    symbols_file = loader.config_dir / "symbols.yaml"
    if not symbols_file.exists():
        return []
    with open(symbols_file) as f:
        data = yaml.safe_load(f) or {}
    return list((data.get("symbols") or {}).keys())


def main() -> int:
    """Main validation function."""
    print("🔍 Validating DEX Assistant configuration...")

    loader = ConfigLoader.create()

    # Unknown symbols fall back to defaults
    symbols = configured_symbols(loader) + ["UNKNOWN"]

    all_valid = True

    for symbol in symbols:
        print(f"\n📊 Validating {symbol}...")

        try:
            errors = validate_symbol_config(loader, symbol)
            if errors:
                print(f"❌ Found {len(errors)} validation errors:")
                for error in errors:
                    print(f"  • {error}")
                all_valid = False
            else:
                print(f"✅ {symbol} configuration is valid")
        except (OSError, yaml.YAMLError) as e:
            print(f"❌ Error loading configuration for {symbol}: {e}")
            all_valid = False

    # Per-call overrides
    print("\n📋 Testing per-call overrides...")
    test_overrides = {
        "strategies": {
            "trend_breakout": {"min_confidence": 80, "risk": {"max_leverage": 20}},
        }
    }
    config = loader.merge_config("BTC", test_overrides)
    errors = ConfigValidator.validate_config(config)
    if errors:
        print("❌ Override validation failed:")
        for error in errors:
            print(f"  • {error}")
        all_valid = False
    else:
        print("✅ Override validation passed")

    print()
    if all_valid:
        print("🎉 All configurations are valid!")
        return 0

    print("💥 Configuration validation failed!")
    return 1


if __name__ == "__main__":
    sys.exit(main())
