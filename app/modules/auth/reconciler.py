"""Derive the application profile for an authenticated session."""

import logging

from app.database.account_store import AccountStore, RecordErrorKind, RecordStoreError
from app.modules.auth.schemas import AuthSession, Profile, UserRole

logger = logging.getLogger(__name__)


async def resolve_profile(account_store: AccountStore, session: AuthSession, table: str = "profiles") -> Profile:
    """
    Fetch the profile row for session.id, provisioning it on first use.

    Schema-missing, access-denied and failed provisioning all degrade to a
    fallback profile built from session metadata. Any other store error is
    raised for the caller to absorb.
    """
    try:
        row = await account_store.select_one(table, {"id": session.id})
    except RecordStoreError as e:
        if e.kind == RecordErrorKind.SCHEMA_MISSING:
            logger.info(f"Table {table} does not exist, using session metadata for {session.id}")
            return Profile.fallback_for(session)
        if e.kind == RecordErrorKind.NOT_FOUND:
            return await _provision_profile(account_store, session, table)
        if e.kind == RecordErrorKind.ACCESS_DENIED:
            logger.info(f"Profile read for {session.id} blocked by policy, using session metadata")
            return Profile.fallback_for(session)
        raise

    stored_role = row.get("role")
    profile = Profile(**{k: v for k, v in row.items() if k != "role"})
    profile.role = _parse_stored_role(session, stored_role)
    metadata_role = session.metadata_role
    if metadata_role and stored_role != metadata_role.value:
        logger.info(f"Profile role mismatch for {session.id}: {stored_role} -> {metadata_role.value}")
        try:
            await account_store.update(table, {"role": metadata_role.value}, {"id": session.id})
        except RecordStoreError as e:
            logger.warning(f"Failed to update profile role for {session.id}: {e.message}")
        profile.role = metadata_role
    return profile


async def _provision_profile(account_store: AccountStore, session: AuthSession, table: str) -> Profile:
    logger.info(f"No profile for {session.id}, creating one")
    record = {
        "id": session.id,
        "email": session.email,
        "full_name": session.metadata_full_name or session.email,
        "role": (session.metadata_role or UserRole.USER).value,
    }
    try:
        created = await account_store.insert(table, record)
        return Profile(**created)
    except Exception as e:
        logger.warning(f"Failed to create profile for {session.id}: {e}")
        return Profile.fallback_for(session)


def _parse_stored_role(session: AuthSession, stored_role) -> UserRole:
    try:
        return UserRole(stored_role)
    except ValueError:
        logger.warning(f"Unknown stored role {stored_role!r} for {session.id}, treating as user")
        return UserRole.USER
