#!/usr/bin/env python3
"""Delete expired revocation-ledger entries and refresh tokens.

Meant to be run periodically by an external scheduler (cron, a platform
job runner, ...). Skipping runs is harmless: stale rows just pile up.

Usage:
    python scripts/cleanup_tokens.py
"""
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main() -> int:
    from core.database import SessionLocal
    from core.logging_config import setup_logging
    from core.config import settings
    from services.blacklist_service import BlacklistService
    from services.token_service import TokenService

    setup_logging(log_level=settings.LOG_LEVEL, log_dir=settings.LOG_DIR)

    db = SessionLocal()
    try:
        blacklisted = BlacklistService.cleanup_expired(db)
        refresh = TokenService.purge_expired_refresh_tokens(db)
    finally:
        db.close()

    print(f"Removed {blacklisted} blacklist entries and {refresh} refresh tokens")
    return 0


if __name__ == "__main__":
    sys.exit(main())
