#!/usr/bin/env python3
"""
Initialize the food-bank logistics core.

This script sets up the project by:
- Checking the Python version
- Checking optional LLM environment variables
- Validating configuration files, including the logistics settings
- Creating the log directory
- Running a smoke scenario against the in-memory repositories
"""

import os
import sys
from datetime import date
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.core.config import ConfigManager  # noqa: E402
from src.core.log_setup import configure_logging  # noqa: E402


def check_python_version() -> bool:
    """Verify Python version is 3.12 or higher."""
    if sys.version_info < (3, 12):
        print(f"❌ Python 3.12+ required. Current version: {sys.version}")
        return False
    print(f"✅ Python version: {sys.version_info.major}.{sys.version_info.minor}")
    return True


def check_llm_env() -> bool:
    """LLM keys are optional: briefings fall back to rule-based text."""
    load_dotenv()

    missing = []
    for var in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY"):
        value = os.getenv(var)
        if not value or value.startswith("your_"):
            missing.append(var)

    if missing:
        print(f"⚠️  LLM keys not set: {', '.join(missing)} (briefings will be rule-based)")
    else:
        print("✅ LLM keys set")
    return True


def check_config_files() -> bool:
    """Validate configuration files exist and parse."""
    config_files = {
        "config/config.yaml": "Main configuration",
        "config/llms.json": "LLM configuration",
    }

    for file_path, description in config_files.items():
        if not Path(file_path).exists():
            print(f"❌ {description} not found: {file_path}")
            return False
        print(f"✅ {description} exists")

    try:
        with open("config/config.yaml") as f:
            if not yaml.safe_load(f):
                print("❌ config.yaml is empty")
                return False
    except yaml.YAMLError as e:
        print(f"❌ Error parsing config.yaml: {e}")
        return False

    try:
        settings = ConfigManager(config_dir=Path("config")).get_logistics_settings()
    except ValidationError as e:
        print(f"❌ Invalid logistics settings: {e}")
        return False

    print(f"✅ Logistics settings valid (intake zone '{settings.intake_zone}')")
    return True


def create_log_directory() -> bool:
    Path("logs").mkdir(parents=True, exist_ok=True)
    print("✅ Created logs directory")
    return True


def run_smoke_scenario() -> bool:
    """Create, load, run and complete a distribution route in memory."""
    from src.core.errors import LogisticsError
    from src.data.memory import InMemoryProductCatalog, InMemoryTruckDirectory
    from src.data.models import Truck
    from src.logistics import build_logistics_core

    core = build_logistics_core(
        trucks=InMemoryTruckDirectory([Truck(truck_id=1, registration="ABC123", capacity=10)]),
        products=InMemoryProductCatalog([1]),
    )
    try:
        core.ledger.credit(1, "A", 20)
        route = core.scheduler.create_route(date.today(), "distribute", truck_id=1, user_id=1)
        stop = core.scheduler.add_destination(route.route_id, address_id=1, destination_type="distribute")
        core.scheduler.add_product(stop.destination_id, product_id=1, quantity=6)
        core.scheduler.start(route.route_id)
        core.scheduler.complete(route.route_id)
    except LogisticsError as e:
        print(f"❌ Smoke scenario failed: {e.message}")
        return False

    on_hand = core.ledger.get_entry(1, "A").on_hand
    if on_hand != 14:
        print(f"❌ Smoke scenario left {on_hand} on hand, expected 14")
        return False
    print("✅ Smoke scenario passed")
    return True


def display_next_steps():
    """Show user what to do next."""
    print("\n" + "=" * 60)
    print("🎉 Project initialization complete!")
    print("=" * 60)
    print("\nNext steps:")
    print("\n1. Review config/config.yaml (intake zone, lock timeout, retries)")
    print("2. Review the briefing model in config/llms.json")
    print("3. Run the tests:")
    print("   pytest")
    print("\n4. Plug real repositories into build_logistics_core()")
    print("   - Implement the interfaces in src/data/repositories.py")
    print("\n" + "=" * 60)


def main():
    """Run all initialization checks."""
    configure_logging(level="WARNING", json_output=False)
    print("=" * 60)
    print("Food-Bank Logistics - Initialization")
    print("=" * 60)
    print()

    checks = [
        ("Python version", check_python_version),
        ("LLM environment", check_llm_env),
        ("Configuration files", check_config_files),
        ("Log directory", create_log_directory),
        ("Smoke scenario", run_smoke_scenario),
    ]

    passed = 0
    failed = 0

    for name, check_func in checks:
        print(f"\nChecking {name}...")
        if check_func():
            passed += 1
        else:
            failed += 1

    print("\n" + "=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    if failed == 0:
        display_next_steps()
        return 0
    else:
        print("\n❌ Some checks failed. Please fix the issues above.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
