import json
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, cast

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from records_cli.db.session import transaction
from records_cli.errors import IdentityUnavailable, NotFound, PermissionDenied, ValidationError
from records_cli.models import UserRole, UserRoleType
from records_cli.utils.local_state import LocalState
from records_cli.utils.logging_config import get_logger

logger = get_logger(__name__)

ROLES = ("user", "admin")

IdentityListener = Callable[[Optional["Identity"]], None]


@dataclass(frozen=True)
class Identity:
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.email or self.display_name or "Unknown User"


class IdentityProvider:
    """Who is signed in. Implementations notify listeners on every change."""

    def current_identity(self) -> Optional[Identity]:
        raise NotImplementedError

    def on_identity_change(self, callback: IdentityListener) -> Callable[[], None]:
        raise NotImplementedError


class LocalIdentityProvider(IdentityProvider):
    """Sign-in persisted in the local state file."""

    STATE_KEY = "currentUser"

    def __init__(self, state: LocalState):
        self._state = state
        self._lock = threading.Lock()
        self._listeners: Dict[int, IdentityListener] = {}
        self._next_token = 0

    def current_identity(self) -> Optional[Identity]:
        try:
            raw = self._state.get(self.STATE_KEY)
            if not raw:
                return None
            data = json.loads(raw)
            return Identity(
                uid=data["uid"],
                email=data.get("email"),
                display_name=data.get("display_name"),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise IdentityUnavailable(f"Could not read the signed-in user: {e}") from e

    def sign_in(
        self, uid: str, email: Optional[str] = None, display_name: Optional[str] = None
    ) -> Identity:
        identity = Identity(uid=uid, email=email, display_name=display_name)
        payload = json.dumps(
            {"uid": uid, "email": email, "display_name": display_name}
        )
        self._write(payload)
        self._notify(identity)
        return identity

    def sign_out(self) -> None:
        self._write(None)
        self._notify(None)

    def _write(self, payload: Optional[str]) -> None:
        try:
            self._state.set(self.STATE_KEY, payload)
        except OSError as e:
            raise IdentityUnavailable(f"Could not store the signed-in user: {e}") from e

    def on_identity_change(self, callback: IdentityListener) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return unsubscribe

    def _notify(self, identity: Optional[Identity]) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            listener(identity)


class RoleService:
    """Roles of signed-in users, created lazily with the ``user`` role."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def ensure_role(self, identity: Identity) -> UserRoleType:
        """Return the identity's role, creating a ``user`` role on first access."""
        with transaction(self._session_factory) as db:
            user_role = db.get(UserRole, identity.uid)
            if user_role is None:
                user_role = UserRole(
                    user_id=identity.uid, role="user", email=identity.email
                )
                db.add(user_role)
                logger.info(f"Created default role for {identity.label}")
            return user_role.role

    def get_role(self, uid: str) -> Optional[UserRoleType]:
        with transaction(self._session_factory) as db:
            user_role = db.get(UserRole, uid)
            return user_role.role if user_role else None

    def is_admin(self, identity: Optional[Identity]) -> bool:
        return identity is not None and self.get_role(identity.uid) == "admin"

    def require_admin(self, identity: Optional[Identity]) -> Identity:
        if identity is None:
            raise PermissionDenied("Sign in first")
        if not self.is_admin(identity):
            raise PermissionDenied("This action is only available to admins")
        return identity

    def list_users(self) -> List[UserRole]:
        query = select(UserRole).order_by(UserRole.email, UserRole.user_id)
        with transaction(self._session_factory) as db:
            return list(db.scalars(query))

    def register_user(
        self, actor: Optional[Identity], uid: str, email: Optional[str] = None
    ) -> UserRole:
        """Create a ``user`` role entry for a new account (admin only)."""
        self.require_admin(actor)
        with transaction(self._session_factory) as db:
            if db.get(UserRole, uid) is not None:
                raise ValidationError({"uid": "is already registered"})
            user_role = UserRole(user_id=uid, role="user", email=email)
            db.add(user_role)

        logger.info(f"Registered user {uid} ({email})")
        return user_role

    def set_role(self, actor: Optional[Identity], uid: str, role: str) -> UserRole:
        """Promote or demote a user (admin only, never one's own role)."""
        actor = self.require_admin(actor)
        if role not in ROLES:
            raise ValidationError({"role": f"must be one of {', '.join(ROLES)}"})
        if actor.uid == uid:
            raise PermissionDenied("Admins cannot change their own role")

        with transaction(self._session_factory) as db:
            user_role = db.get(UserRole, uid)
            if user_role is None:
                raise NotFound("User", uid)
            user_role.role = cast(UserRoleType, role)

        logger.info(f"{actor.label} set role of {uid} to {role}")
        return user_role

    def bootstrap_admin(self, identity: Identity) -> UserRole:
        """Make ``identity`` the first admin. Only allowed while no admin exists."""
        with transaction(self._session_factory) as db:
            existing = db.scalar(select(UserRole).where(UserRole.role == "admin").limit(1))
            if existing is not None:
                raise PermissionDenied("An admin already exists")
            user_role = db.get(UserRole, identity.uid)
            if user_role is None:
                user_role = UserRole(user_id=identity.uid, email=identity.email)
                db.add(user_role)
            user_role.role = "admin"

        logger.info(f"Bootstrapped {identity.label} as the first admin")
        return user_role
