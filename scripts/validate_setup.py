#!/usr/bin/env python3
"""
Validation script for chatbot-ingest setup.

Checks:
- Module imports (including the selected backend's driver)
- Environment configuration
- Backend selection
- Store factories (optionally connecting to the database)
"""

import sys
import argparse
import asyncio
import logging
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatbot_ingest.core.env import DEFAULT_DOTENV_PATH, ENV_VAR_NAMES, load_env_vars


def check_imports(env):
    """Check that configuration modules and the selected driver import."""
    print("🔍 Checking module imports...")

    try:
        from chatbot_ingest.core.ingest_config import make_ingest_config  # noqa: F401
        print("  ✅ Ingest configuration imports")
    except ImportError as e:
        print(f"  ❌ Ingest configuration import failed: {e}")
        return False

    from chatbot_ingest.core.backend_selection import BackendFamily, select_backend

    family = select_backend(env).family
    module = "pgvector_stores" if family is BackendFamily.RELATIONAL else "mongodb_stores"
    try:
        __import__(f"chatbot_ingest.services.{module}")
        print(f"  ✅ {module} imports")
    except ImportError as e:
        print(f"  ❌ {module} import failed: {e}")
        return False

    return True


def check_environment(env):
    """Report which ingest variables are set (values are never printed)."""
    print("\n🔍 Checking environment...")

    missing = set(env.missing())
    for name in ENV_VAR_NAMES:
        if name in missing:
            print(f"  ⚪ {name} - not set")
        else:
            print(f"  ✅ {name}")

    if "OPENAI_API_KEY" in missing or "OPENAI_EMBEDDING_MODEL" in missing:
        print("  ❌ OPENAI_API_KEY and OPENAI_EMBEDDING_MODEL are required for embedding")
        return False

    return True


def check_backend_selection(env):
    """Report the selected backend family and whether it is fully configured."""
    print("\n🔍 Checking backend selection...")

    from chatbot_ingest.core.backend_selection import select_backend

    selection = select_backend(env)
    print(f"  🔧 Selected: {selection.describe()}")

    if not selection.connection_uri or not selection.database_name:
        print("  ❌ Selected backend is missing its connection URI or database name")
        return False

    return True


def check_store_factories(env, connect=False):
    """Build each store through the configuration (and optionally connect)."""
    print("\n🔍 Checking store factories...")

    from chatbot_ingest.core.ingest_config import make_ingest_config

    config = make_ingest_config(env)
    factories = [
        ("embedded_content_store", config.embedded_content_store),
        ("page_store", config.page_store),
        ("ingest_meta_store", config.ingest_meta_store),
    ]

    ok = True
    for name, factory in factories:
        try:
            store = factory()
            print(f"  ✅ {name}: {type(store).__name__} ({store.backend_family.value})")
        except Exception as e:
            print(f"  ❌ {name} failed: {e}")
            ok = False
            continue

        if connect and name == "ingest_meta_store":
            try:
                last_run = store.load_last_successful_run_date()
                print(f"  ✅ Connected; last successful run for '{store.entry_id}': {last_run}")
            except Exception as e:
                print(f"  ❌ Connection check failed: {e}")
                ok = False
        store.close()

    return ok


def check_data_sources(env):
    """Build the configured data sources (no fetching)."""
    print("\n🔍 Checking data sources...")

    from chatbot_ingest.core.ingest_config import make_ingest_config

    config = make_ingest_config(env)
    try:
        sources = asyncio.run(config.data_sources())
    except Exception as e:
        print(f"  ❌ Data source setup failed: {e}")
        return False

    for source in sources:
        print(f"  ✅ {source.name}")
    return True


def main():
    """Run all validation checks."""
    parser = argparse.ArgumentParser(description="Validate chatbot-ingest configuration")
    parser.add_argument("--env-file", type=Path, default=DEFAULT_DOTENV_PATH,
                        help="Path to .env file (default: project root .env)")
    parser.add_argument("--connect", action="store_true",
                        help="Also connect to the selected database")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    print("=" * 60)
    print("Chatbot Ingest Setup Validation")
    print("=" * 60)

    env = load_env_vars(args.env_file)

    results = []
    results.append(("Imports", check_imports(env)))
    results.append(("Environment", check_environment(env)))
    results.append(("Backend Selection", check_backend_selection(env)))
    results.append(("Store Factories", check_store_factories(env, connect=args.connect)))
    results.append(("Data Sources", check_data_sources(env)))

    # Summary
    print("\n" + "=" * 60)
    print("Validation Summary")
    print("=" * 60)

    passed = sum(1 for _, result in results if result)
    total = len(results)

    for check_name, result in results:
        status = "✅ PASS" if result else "❌ FAIL"
        print(f"{status} - {check_name}")

    print(f"\nTotal: {passed}/{total} checks passed")

    if passed == total:
        print("\n🎉 All validation checks passed!")
        return 0
    else:
        print(f"\n⚠️  {total - passed} check(s) failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
