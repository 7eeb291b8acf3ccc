#!/usr/bin/env python3
"""
Connection check for TaxBandits credentials.

This script validates:
1. Configuration loading from environment (or a .env file)
2. OAuth token exchange against the selected environment

Usage:
    python check_connection.py [--env-file PATH] [--production]

Exit codes:
    0 - Authenticated successfully
    1 - Configuration error
    2 - Authentication or network error
"""

import sys
import argparse
import logging
from dataclasses import replace
from pathlib import Path

from taxbandit import TaxBanditClient, TaxBanditError, load_config, load_config_from_dotenv

# Set up logging - show INFO and above
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("check_connection")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check TaxBandits API credentials")
    parser.add_argument("--env-file", type=Path, help="Read settings from this .env file first")
    parser.add_argument("--production", action="store_true", help="Authenticate against production")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    print("\n" + "=" * 60)
    print("STEP 1: Loading Configuration")
    print("=" * 60)
    try:
        if args.env_file:
            print(f"  Using .env file at: {args.env_file}")
            config = load_config_from_dotenv(args.env_file)
        else:
            config = load_config()
    except ValueError as e:
        print(f"\n  [FAIL] Configuration error: {e}")
        return 1

    if args.production:
        config = replace(config, use_sandbox=False)

    client = TaxBanditClient(config)
    print(f"  Client ID: {config.masked_client_id()}")
    print(f"  Environment: {config.environment}")
    print(f"  OAuth Endpoint: {client.oauth_url}")
    print(f"  API Base URL: {client.api_url}")

    if not client.has_credentials():
        print("\n  [FAIL] TAXBANDIT_CLIENT_ID, TAXBANDIT_CLIENT_SECRET and TAXBANDIT_USER_TOKEN are required")
        return 1
    print("\n  [OK] Configuration loaded successfully")

    print("\n" + "=" * 60)
    print("STEP 2: Requesting Access Token")
    print("=" * 60)
    try:
        token = client.authenticate()
    except TaxBanditError as e:
        print(f"\n  [FAIL] {e}")
        for detail in e.errors:
            print(f"         {detail.name}: {detail.message}")
        return 2

    print(f"\n  Token: {token}")
    print(f"  Authenticated: {client.is_authenticated()}")
    print("\n  [OK] Access token obtained successfully!")
    return 0


if __name__ == "__main__":
    try:
        exit_code = main()
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        exit_code = 130

    sys.exit(exit_code)
