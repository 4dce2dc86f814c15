from app.database.account_store import AccountStore, RecordErrorKind, RecordStoreError
from app.modules.setup.schemas import TableStatus, SetupStatusResponse
from typing import List
import logging

logger = logging.getLogger(__name__)

SETUP_HINT = "Database setup is incomplete. Run supabase-setup.sql in the Supabase SQL Editor."


class SetupService:
    def __init__(self, account_store: AccountStore, tables: List[str]):
        self.account_store = account_store
        self.tables = tables

    async def check_table(self, table: str) -> TableStatus:
        """Probe a table with a one-row select"""
        try:
            rows = await self.account_store.select(table, {}, limit=1)
        except RecordStoreError as e:
            if e.kind == RecordErrorKind.SCHEMA_MISSING:
                return TableStatus(name=table, exists=False, error="Table does not exist")
            return TableStatus(name=table, exists=True, has_data=False, error=e.message)
        return TableStatus(name=table, exists=True, has_data=len(rows) > 0)

    async def check_database_setup(self) -> SetupStatusResponse:
        try:
            statuses = [await self.check_table(table) for table in self.tables]
        except Exception as e:
            logger.error(f"Database check failed: {e}")
            return SetupStatusResponse(status="error", tables=[], message="Failed to check database")

        if all(s.exists for s in statuses) and not any(s.error for s in statuses):
            return SetupStatusResponse(status="good", tables=statuses, message="Database setup is good")
        logger.warning(f"Database setup has issues: {[s.name for s in statuses if s.error]}")
        return SetupStatusResponse(status="issues", tables=statuses, message=SETUP_HINT)
