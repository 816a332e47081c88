"""Session store consumed by the scan pipeline.

``SessionStore`` is the contract; ``SQLAlchemySessionStore`` is the
implementation over the application database. Writes are committed
before they return, so a later ``find_active_session`` from the same
caller always sees them.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from vaultpark import db
from vaultpark.models.parking_session import ParkingSession, SessionStatus
from vaultpark.models.pricing_tier import PricingTier
from vaultpark.models.user import User
from vaultpark.services.billing_service import Tier
from vaultpark.utils.errors import PersistenceError, SessionNotFound

logger = logging.getLogger(__name__)

@dataclass
class ParkingSessionDraft:
    """Fields known at entry time, before the store assigns an id."""
    driver_id: str
    driver_name: str
    vehicle_number: str
    entry_time: int
    gate_location: str
    scanned_by_guard_id: str
    guard_name: Optional[str] = None

@dataclass
class SessionFilter:
    driver_id: Optional[str] = None
    status: Optional[SessionStatus] = None
    gate_location: Optional[str] = None
    guard_id: Optional[str] = None

@dataclass(frozen=True)
class SessionEvent:
    kind: str  # 'created' or 'closed'
    session: ParkingSession

SessionListener = Callable[[SessionEvent], None]

class SessionStore(ABC):
    """Keyed CRUD over parking sessions plus read-only user lookup."""

    def __init__(self):
        self._listeners: List[SessionListener] = []

    @abstractmethod
    def find_active_session(self, driver_id: str) -> Optional[ParkingSession]:
        ...

    @abstractmethod
    def find_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    def find_tier(self, user: User) -> Optional[Tier]:
        ...

    @abstractmethod
    def create_session(self, draft: ParkingSessionDraft) -> ParkingSession:
        """Raises PersistenceError."""

    @abstractmethod
    def close_session(self, session_id: str, exit_time: int,
                      guard_id: Optional[str] = None) -> ParkingSession:
        """Raises SessionNotFound or PersistenceError."""

    @abstractmethod
    def list_recent(self, filter_by: Optional[SessionFilter] = None, limit: int = 10,
                    offset: int = 0, time_range: Optional[Tuple[Optional[int], Optional[int]]] = None
                    ) -> List[ParkingSession]:
        ...

    def resolve_tier(self, user: Optional[User], default_hourly_rate: float) -> Tier:
        """The user's pricing tier, or a flat ``default_hourly_rate`` tier."""
        tier = self.find_tier(user) if user is not None else None
        return tier or Tier(hourly_rate=default_hourly_rate)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register for created/closed events. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, kind: str, session: ParkingSession) -> None:
        event = SessionEvent(kind=kind, session=session)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener failed on %s event for %s", kind, session.id)

class SQLAlchemySessionStore(SessionStore):
    """Session store backed by Flask-SQLAlchemy."""

    def find_active_session(self, driver_id: str) -> Optional[ParkingSession]:
        try:
            return ParkingSession.query.filter_by(
                driver_id=driver_id,
                status=SessionStatus.ACTIVE
            ).order_by(ParkingSession.entry_time.desc()).first()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"Failed to load active session: {str(e)}") from e

    def find_user(self, user_id: str) -> Optional[User]:
        try:
            return db.session.get(User, user_id)
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"Failed to load user: {str(e)}") from e

    def find_tier(self, user: User) -> Optional[Tier]:
        try:
            tier = PricingTier.for_membership(user.membership_type)
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"Failed to load pricing tier: {str(e)}") from e
        return Tier.from_model(tier) if tier else None

    def create_session(self, draft: ParkingSessionDraft) -> ParkingSession:
        session = ParkingSession(
            driver_id=draft.driver_id,
            driver_name=draft.driver_name,
            vehicle_number=draft.vehicle_number,
            entry_time=draft.entry_time,
            gate_location=draft.gate_location,
            scanned_by_guard_id=draft.scanned_by_guard_id,
            guard_name=draft.guard_name,
            status=SessionStatus.ACTIVE
        )

        try:
            db.session.add(session)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"Failed to create parking session: {str(e)}") from e

        logger.info("Parking session %s opened for driver %s at %s",
                    session.id, session.driver_id, session.gate_location)
        self._publish('created', session)
        return session

    def close_session(self, session_id: str, exit_time: int,
                      guard_id: Optional[str] = None) -> ParkingSession:
        try:
            session = db.session.get(ParkingSession, session_id)
            if session is None or session.status != SessionStatus.ACTIVE:
                raise SessionNotFound()

            if exit_time < session.entry_time:
                logger.warning("Exit time %s precedes entry %s for session %s, clamping",
                               exit_time, session.entry_time, session_id)
                exit_time = session.entry_time

            # Conditional update so two closers cannot both complete it
            updated = ParkingSession.query.filter_by(
                id=session_id,
                status=SessionStatus.ACTIVE
            ).update({
                'exit_time': exit_time,
                'exit_guard_id': guard_id,
                'status': SessionStatus.COMPLETED
            }, synchronize_session=False)

            if updated == 0:
                db.session.rollback()
                raise SessionNotFound()

            db.session.commit()
            db.session.refresh(session)
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"Failed to complete parking session: {str(e)}") from e

        logger.info("Parking session %s closed for driver %s", session.id, session.driver_id)
        self._publish('closed', session)
        return session

    def list_recent(self, filter_by: Optional[SessionFilter] = None, limit: int = 10,
                    offset: int = 0, time_range: Optional[Tuple[Optional[int], Optional[int]]] = None
                    ) -> List[ParkingSession]:
        query = ParkingSession.query

        if filter_by:
            if filter_by.driver_id:
                query = query.filter(ParkingSession.driver_id == filter_by.driver_id)
            if filter_by.status:
                query = query.filter(ParkingSession.status == filter_by.status)
            if filter_by.gate_location:
                query = query.filter(ParkingSession.gate_location == filter_by.gate_location)
            if filter_by.guard_id:
                query = query.filter(ParkingSession.scanned_by_guard_id == filter_by.guard_id)

        if time_range:
            start, end = time_range
            if start is not None:
                query = query.filter(ParkingSession.entry_time >= start)
            if end is not None:
                query = query.filter(ParkingSession.entry_time < end)

        try:
            return query.order_by(ParkingSession.entry_time.desc()) \
                .offset(offset).limit(limit).all()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"Failed to list parking sessions: {str(e)}") from e
