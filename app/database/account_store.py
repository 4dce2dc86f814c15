"""
Thin async wrapper over the Supabase client.

Auth calls raise AccountStoreError with a message fit for the end user.
Table calls raise RecordStoreError tagged with a RecordErrorKind, classified
once here from the PostgREST error so callers never parse error text.
"""

import logging
import re
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from supabase import AsyncClient, AuthError, PostgrestAPIError

from app.modules.auth.schemas import AuthSession

logger = logging.getLogger(__name__)

SessionHandler = Callable[[str, Optional[AuthSession]], None]

_SCHEMA_MISSING_CODES = {"42P01", "PGRST205"}
_NOT_FOUND_CODES = {"PGRST116"}
_ACCESS_DENIED_CODES = {"42501", "PGRST301", "PGRST302"}
_ACCESS_DENIED_STATUS = re.compile(r"\b(401|403|406)\b")


class RecordErrorKind(str, Enum):
    SCHEMA_MISSING = "schema_missing"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    OTHER = "other"


class RecordStoreError(Exception):
    def __init__(self, kind: RecordErrorKind, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code


class AccountStoreError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def classify_record_error(code: Optional[str], message: str) -> RecordErrorKind:
    code = code or ""
    message = message or ""
    if code in _SCHEMA_MISSING_CODES or ("relation" in message and "does not exist" in message):
        return RecordErrorKind.SCHEMA_MISSING
    if code in _NOT_FOUND_CODES:
        return RecordErrorKind.NOT_FOUND
    if code in _ACCESS_DENIED_CODES or _ACCESS_DENIED_STATUS.search(message):
        return RecordErrorKind.ACCESS_DENIED
    return RecordErrorKind.OTHER


def to_record_store_error(exc: Exception) -> RecordStoreError:
    if isinstance(exc, RecordStoreError):
        return exc
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    return RecordStoreError(classify_record_error(code, message), message, code)


def to_auth_session(session: Any) -> Optional[AuthSession]:
    """Convert a gotrue Session into our own model; None stays None."""
    if session is None or getattr(session, "user", None) is None:
        return None
    user = session.user
    return AuthSession(
        id=user.id,
        email=user.email,
        user_metadata=user.user_metadata or {},
        access_token=getattr(session, "access_token", None),
    )


class Subscription:
    """Handle for a session-change subscription."""

    def __init__(self, inner: Any):
        self._inner = inner
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        try:
            self._inner.unsubscribe()
        except Exception as e:
            logger.warning(f"Error cancelling auth subscription: {e}")


class AccountStore:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    # Auth

    async def get_current_session(self) -> Optional[AuthSession]:
        try:
            session = await self.supabase.auth.get_session()
        except AuthError as e:
            raise AccountStoreError(e.message)
        return to_auth_session(session)

    def subscribe(self, handler: SessionHandler) -> Subscription:
        def _on_change(event, session):
            handler(str(event), to_auth_session(session))

        return Subscription(self.supabase.auth.on_auth_state_change(_on_change))

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            response = await self.supabase.auth.sign_in_with_password({
                "email": email,
                "password": password
            })
        except AuthError as e:
            raise AccountStoreError(e.message)
        session = to_auth_session(response.session)
        if session is None:
            raise AccountStoreError("Invalid login credentials")
        return session

    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any]) -> None:
        try:
            await self.supabase.auth.sign_up({
                "email": email,
                "password": password,
                "options": {
                    "data": metadata
                }
            })
        except AuthError as e:
            raise AccountStoreError(e.message)

    async def sign_out(self) -> None:
        try:
            await self.supabase.auth.sign_out()
        except AuthError as e:
            raise AccountStoreError(e.message)

    # Records

    async def select(self, table: str, filters: Dict[str, Any], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = self.supabase.table(table).select("*")
        for field, value in filters.items():
            query = query.eq(field, value)
        if limit is not None:
            query = query.limit(limit)
        try:
            result = await query.execute()
        except PostgrestAPIError as e:
            raise to_record_store_error(e)
        return result.data or []

    async def select_one(self, table: str, filters: Dict[str, Any]) -> Dict[str, Any]:
        """Exactly one row or RecordStoreError(NOT_FOUND)."""
        query = self.supabase.table(table).select("*")
        for field, value in filters.items():
            query = query.eq(field, value)
        try:
            result = await query.single().execute()
        except PostgrestAPIError as e:
            raise to_record_store_error(e)
        if not result.data:
            raise RecordStoreError(RecordErrorKind.NOT_FOUND, f"No row in {table}", "PGRST116")
        return result.data

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = await self.supabase.table(table).insert(record).execute()
        except PostgrestAPIError as e:
            raise to_record_store_error(e)
        if not result.data:
            raise RecordStoreError(RecordErrorKind.ACCESS_DENIED, f"Insert into {table} returned no row")
        return result.data[0]

    async def update(self, table: str, patch: Dict[str, Any], filters: Dict[str, Any]) -> Dict[str, Any]:
        query = self.supabase.table(table).update(patch)
        for field, value in filters.items():
            query = query.eq(field, value)
        try:
            result = await query.execute()
        except PostgrestAPIError as e:
            raise to_record_store_error(e)
        if not result.data:
            # RLS filters the target row out instead of failing the request
            raise RecordStoreError(RecordErrorKind.ACCESS_DENIED, f"Update on {table} matched no row")
        return result.data[0]

    async def delete(self, table: str, filters: Dict[str, Any]) -> None:
        query = self.supabase.table(table).delete()
        for field, value in filters.items():
            query = query.eq(field, value)
        try:
            await query.execute()
        except PostgrestAPIError as e:
            raise to_record_store_error(e)
