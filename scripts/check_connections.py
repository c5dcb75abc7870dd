#!/usr/bin/env python3
"""
Connection Check Script

Run this to verify MongoDB and the alignment LLM are reachable.
Usage: python scripts/check_connections.py
"""
import asyncio
import sys
sys.path.insert(0, '.')

from collab.core.config import get_settings
from collab.db.mongodb import test_mongo_connection
from collab.services.llm_client import get_llm_client


def main():
    settings = get_settings()
    print("=" * 50)
    print("CAMPUS COLLAB - CONNECTION CHECK")
    print("=" * 50)

    # MongoDB
    print("\n[1] Checking MongoDB...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    if test_mongo_connection():
        print("    ✅ MongoDB: CONNECTED")
    else:
        print("    ❌ MongoDB: FAILED")

    # LLM (only if API key is set)
    print("\n[2] Checking LLM API...")
    if settings.llm_configured:
        print(f"    Base URL: {settings.llm_base_url}")
        print(f"    Model: {settings.llm_model}")
        if asyncio.run(get_llm_client().test_connection()):
            print("    ✅ LLM: CONNECTED")
        else:
            print("    ❌ LLM: FAILED")
    else:
        print("    ⚠️  LLM: API key not configured (alignment returns 500)")

    print("\n" + "=" * 50)
    print("Connection check complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()
