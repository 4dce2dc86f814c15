import asyncio
import logging
from typing import Optional

from app.database.account_store import AccountStore, AccountStoreError, Subscription
from app.modules.auth.reconciler import resolve_profile
from app.modules.auth.schemas import AuthResult, AuthSession, AuthState, Profile, UserRole

logger = logging.getLogger(__name__)


class AuthStore:
    """
    Owns the (session, profile, loading) triple for the process.

    Session-change notifications are queued and handled one at a time by a
    single consumer task. Every profile resolution takes a generation number
    when it starts and is only applied if no newer resolution or sign-out
    started in the meantime. A superseded resolution for the session that is
    still current waits for the newer one instead of returning early.
    """

    def __init__(self, account_store: AccountStore, profiles_table: str = "profiles"):
        self.account_store = account_store
        self.profiles_table = profiles_table
        self.session: Optional[AuthSession] = None
        self.profile: Optional[Profile] = None
        self.loading = True
        self._generation = 0
        self._events: Optional[asyncio.Queue] = None
        self._subscription: Optional[Subscription] = None
        self._consumer: Optional[asyncio.Task] = None
        self._latest_resolution = _finished_event()

    def state(self) -> AuthState:
        return AuthState(session=self.session, profile=self.profile, loading=self.loading)

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.role == UserRole.ADMIN

    async def initialize(self) -> None:
        """Restore any persisted session and start listening for session changes."""
        if self._events is not None:
            return
        self.loading = True
        self._events = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume_events())
        self._subscription = self.account_store.subscribe(self.notify)

        try:
            session = await self.account_store.get_current_session()
        except Exception as e:
            logger.warning(f"Could not restore session: {e}")
            session = None

        self._set_session(session)
        if session is None:
            self.loading = False
        else:
            # Profile is resolved through the notification path, which clears loading
            self.notify("INITIAL_SESSION", session)
        logger.info(f"Auth store initialized (session={'yes' if session else 'no'})")

    def notify(self, event: str, session: Optional[AuthSession]) -> None:
        """Queue a session-change notification; safe to call from sync callbacks."""
        if self._events is None:
            logger.warning(f"Dropping auth event {event}: store not initialized")
            return
        self._events.put_nowait((event, session))

    async def wait_idle(self) -> None:
        """Block until every queued notification has been handled."""
        if self._events is not None:
            await self._events.join()

    async def sign_in(self, email: str, password: str) -> AuthResult:
        try:
            session = await self.account_store.sign_in_with_password(email, password)
        except AccountStoreError as e:
            return AuthResult(error=e.message)
        except Exception as e:
            logger.exception(f"Sign-in failed: {e}")
            return AuthResult(error=str(e))

        self._set_session(session)
        if self._events is None:
            await self._resolve(session)
            self.loading = False
        else:
            # Supabase also emits SIGNED_IN; duplicates are handled in order
            self.notify("SIGNED_IN", session)
            await self.wait_idle()
        return AuthResult()

    async def sign_up(self, email: str, password: str, full_name: str, role: str) -> AuthResult:
        """Request account creation; the new account is confirmed out of band."""
        try:
            await self.account_store.sign_up(email, password, {"full_name": full_name, "role": role})
        except AccountStoreError as e:
            return AuthResult(error=e.message)
        except Exception as e:
            logger.exception(f"Sign-up failed: {e}")
            return AuthResult(error=str(e))
        return AuthResult()

    async def sign_out(self) -> None:
        try:
            await self.account_store.sign_out()
        except Exception as e:
            logger.warning(f"Remote sign-out failed, clearing local session anyway: {e}")
        finally:
            self._invalidate()
            self.session = None
            self.profile = None
            self.loading = False
            if self._events is not None:
                # Orders the sign-out after any notification still queued
                self.notify("SIGNED_OUT", None)

    async def refresh_profile(self) -> None:
        if self.session is None:
            return
        await self._resolve(self.session)

    async def close(self, drain_timeout: float = 5.0) -> None:
        """Stop listening, handle notifications already queued, then stop the consumer."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._consumer is not None:
            try:
                await asyncio.wait_for(self._events.join(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Auth events not drained after {drain_timeout}s, cancelling")
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        self._events = None

    def _set_session(self, session: Optional[AuthSession]) -> None:
        self.session = session
        if self.profile is not None and (session is None or self.profile.id != session.id):
            self.profile = None

    def _invalidate(self) -> None:
        self._generation += 1
        self._latest_resolution = _finished_event()

    async def _resolve(self, session: AuthSession) -> bool:
        self._generation += 1
        generation = self._generation
        finished = asyncio.Event()
        self._latest_resolution = finished
        try:
            try:
                profile = await resolve_profile(self.account_store, session, self.profiles_table)
            except Exception as e:
                logger.error(f"Error fetching profile for {session.id}: {e}")
                profile = Profile.fallback_for(session)

            if self.session is None or self.session.id != profile.id:
                logger.debug(f"Discarding profile for {session.id}: session changed")
                return False
            if generation != self._generation:
                logger.debug(f"Profile for {session.id} superseded (generation {generation} < {self._generation})")
                await self._latest_resolution.wait()
                return self.profile is not None and self.profile.id == session.id
            self.profile = profile
            return True
        finally:
            finished.set()

    async def _handle_session_change(self, event: str, session: Optional[AuthSession]) -> None:
        logger.debug(f"Auth event {event} (session={'yes' if session else 'no'})")
        self._set_session(session)
        if session is not None:
            await self._resolve(session)
        else:
            self._invalidate()
            self.profile = None
        self.loading = False

    async def _consume_events(self) -> None:
        while True:
            event, session = await self._events.get()
            try:
                await self._handle_session_change(event, session)
            except Exception as e:
                logger.exception(f"Error handling auth event {event}: {e}")
                self.loading = False
            finally:
                self._events.task_done()


def _finished_event() -> asyncio.Event:
    event = asyncio.Event()
    event.set()
    return event
