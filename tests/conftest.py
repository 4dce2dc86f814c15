"""
Shared fixtures: an in-memory stand-in for the Supabase-backed AccountStore.

FakeAccountStore keeps rows per table in dicts and records every call. Like
supabase-auth, it notifies subscribers with SIGNED_IN from a successful
sign_in_with_password and SIGNED_OUT from sign_out before returning, and every
table call yields to the event loop once. Tests can inject RecordStoreError /
AccountStoreError or hold a profile fetch on an asyncio.Event to control
interleaving.
"""
import asyncio
import copy
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from app.database.account_store import AccountStoreError, RecordErrorKind, RecordStoreError
from app.modules.auth.schemas import AuthSession
from app.modules.auth.service import AuthStore


class FakeSubscription:
    def __init__(self, store, handler):
        self.store = store
        self.handler = handler
        self.active = True

    def unsubscribe(self):
        self.active = False
        if self.handler in self.store.handlers:
            self.store.handlers.remove(self.handler)


class FakeAccountStore:
    def __init__(self, tables: Optional[Dict[str, Dict[str, dict]]] = None, current_session: Optional[AuthSession] = None):
        self.tables = tables if tables is not None else {"profiles": {}}
        self.current_session = current_session
        self.accounts: Dict[str, tuple] = {}
        self.handlers: List = []
        self.calls: List[tuple] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.select_error: Optional[RecordStoreError] = None
        self.insert_error: Optional[RecordStoreError] = None
        self.update_error: Optional[RecordStoreError] = None
        self.sign_up_error: Optional[str] = None
        self.sign_out_error: Optional[Exception] = None

    def add_account(self, email: str, password: str, session: AuthSession):
        self.accounts[email] = (password, session)

    def emit(self, event: str, session: Optional[AuthSession]):
        for handler in list(self.handlers):
            handler(event, session)

    def calls_to(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]

    def _table(self, table: str) -> Dict[str, dict]:
        if table not in self.tables:
            raise RecordStoreError(
                RecordErrorKind.SCHEMA_MISSING,
                f'relation "public.{table}" does not exist',
                "42P01",
            )
        return self.tables[table]

    async def get_current_session(self):
        self.calls.append(("get_current_session",))
        return self.current_session

    def subscribe(self, handler):
        self.handlers.append(handler)
        return FakeSubscription(self, handler)

    async def sign_in_with_password(self, email, password):
        self.calls.append(("sign_in_with_password", email))
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise AccountStoreError("Invalid login credentials")
        self.emit("SIGNED_IN", account[1])
        return account[1]

    async def sign_up(self, email, password, metadata):
        self.calls.append(("sign_up", email, metadata))
        if self.sign_up_error:
            raise AccountStoreError(self.sign_up_error)

    async def sign_out(self):
        self.calls.append(("sign_out",))
        if self.sign_out_error:
            raise self.sign_out_error
        self.emit("SIGNED_OUT", None)

    async def select(self, table, filters, limit=None):
        self.calls.append(("select", table, filters))
        await asyncio.sleep(0)
        rows = [
            copy.deepcopy(r) for r in self._table(table).values()
            if all(r.get(k) == v for k, v in filters.items())
        ]
        return rows[:limit] if limit is not None else rows

    async def select_one(self, table, filters):
        self.calls.append(("select_one", table, filters))
        await asyncio.sleep(0)
        gate = self.gates.get(filters.get("id"))
        if gate is not None:
            await gate.wait()
        if self.select_error:
            raise self.select_error
        rows = [
            r for r in self._table(table).values()
            if all(r.get(k) == v for k, v in filters.items())
        ]
        if len(rows) != 1:
            raise RecordStoreError(RecordErrorKind.NOT_FOUND, "JSON object requested, multiple (or no) rows returned", "PGRST116")
        return copy.deepcopy(rows[0])

    async def insert(self, table, record):
        self.calls.append(("insert", table, record))
        await asyncio.sleep(0)
        if self.insert_error:
            raise self.insert_error
        row = dict(record)
        row.setdefault("avatar_url", None)
        row.setdefault("created_at", "2024-05-01T12:00:00+00:00")
        row.setdefault("updated_at", "2024-05-01T12:00:00+00:00")
        self._table(table)[row["id"]] = row
        return copy.deepcopy(row)

    async def update(self, table, patch, filters):
        self.calls.append(("update", table, patch, filters))
        await asyncio.sleep(0)
        if self.update_error:
            raise self.update_error
        rows = self._table(table)
        for row in rows.values():
            if all(row.get(k) == v for k, v in filters.items()):
                row.update(patch)
                return copy.deepcopy(row)
        raise RecordStoreError(RecordErrorKind.ACCESS_DENIED, f"Update on {table} matched no row")

    async def delete(self, table, filters):
        self.calls.append(("delete", table, filters))
        await asyncio.sleep(0)
        rows = self._table(table)
        for key in [k for k, r in rows.items() if all(r.get(f) == v for f, v in filters.items())]:
            del rows[key]


def make_session(user_id="u1", email="a@x.com", **metadata) -> AuthSession:
    return AuthSession(id=user_id, email=email, user_metadata=metadata, access_token=f"token-{user_id}")


def profile_row(user_id="u1", email="a@x.com", role="user", full_name="Ada"):
    return {
        "id": user_id,
        "email": email,
        "full_name": full_name,
        "role": role,
        "avatar_url": None,
        "created_at": "2024-05-01T12:00:00+00:00",
        "updated_at": "2024-05-01T12:00:00+00:00",
    }


@pytest.fixture
def fake_store():
    return FakeAccountStore()


@pytest_asyncio.fixture
async def auth_store(fake_store):
    store = AuthStore(fake_store)
    await store.initialize()
    yield store
    await store.close()
