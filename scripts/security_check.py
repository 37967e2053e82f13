#!/usr/bin/env python3
"""Pre-deploy security configuration check for the storefront.

Reads the same environment as the service and reports weak or missing
secrets. Secret values are never printed.

Usage:
    python scripts/security_check.py
    python scripts/security_check.py --production
    python scripts/security_check.py --generate
"""

import argparse
import secrets
import sys

from pydantic import ValidationError

from storefront.core.config import ConfigurationError, SecurityConfig, Settings


def generate_secrets() -> dict[str, str]:
    """Fresh values for every secret the security core needs."""
    return {
        "CSRF_SECRET": secrets.token_urlsafe(48),
        "ENCRYPTION_KEY": secrets.token_hex(32),
        "PAYMENT_SECRET": secrets.token_urlsafe(48),
        "PAYMENT_SALT": secrets.token_urlsafe(32),
    }


def run_check(settings: Settings) -> list[str]:
    """Return every problem found in ``settings``. Empty means clean."""
    problems = list(settings.check_security_configuration())
    try:
        SecurityConfig.from_settings(settings)
    except ConfigurationError as e:
        problems.append(str(e))
    return problems


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check storefront security configuration")
    parser.add_argument(
        "--production",
        action="store_true",
        help="Check as if ENVIRONMENT=production",
    )
    parser.add_argument(
        "--generate",
        action="store_true",
        help="Print freshly generated secrets and exit",
    )
    args = parser.parse_args(argv)

    if args.generate:
        for name, value in generate_secrets().items():
            print(f"{name}={value}")
        return 0

    try:
        settings = Settings(environment="production") if args.production else Settings()
    except ValidationError as e:
        print("ERROR: invalid configuration")
        for error in e.errors():
            print(f"  - {error['msg']}")
        return 1

    print(f"Checking security configuration ({settings.environment})...")
    problems = run_check(settings)
    if not problems:
        print("OK: no problems found")
        return 0

    for problem in problems:
        print(f"WARNING: {problem}")
    print(f"{len(problems)} problem(s) found")
    return 1


if __name__ == "__main__":
    sys.exit(main())
