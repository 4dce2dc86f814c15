"""
Check Database Setup Script
Probes the tables the app relies on and reports which are missing or unreadable.
Run after applying supabase-setup.sql; exits non-zero when setup is incomplete.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.config import settings
from app.database.supabase_client import get_supabase
from app.database.account_store import AccountStore
from app.modules.setup.service import SetupService
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def check() -> bool:
    supabase = await get_supabase()
    service = SetupService(AccountStore(supabase), settings.get_setup_tables_list())
    result = await service.check_database_setup()

    for table in result.tables:
        if not table.exists:
            logger.error(f"{table.name}: {table.error}")
        elif table.error:
            logger.warning(f"{table.name}: {table.error}")
        else:
            logger.info(f"{table.name}: {'has data' if table.has_data else 'empty'}")

    logger.info(result.message)
    return result.status == "good"


def main():
    """Main function to check the database setup"""
    try:
        ok = asyncio.run(check())
    except Exception as e:
        logger.error(f"Error during database check: {e}")
        sys.exit(1)
    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
