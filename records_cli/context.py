from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from records_cli.academic_year import AcademicYearCatalog, AcademicYearSelector
from records_cli.auth import Identity, LocalIdentityProvider, RoleService
from records_cli.corrections import CorrectionWorkflow
from records_cli.db.config import get_session_factory
from records_cli.db.live import ChangeHub
from records_cli.errors import PermissionDenied
from records_cli.records import RecordStore, now_millis
from records_cli.utils.local_state import LocalState


@dataclass
class Services:
    """Everything a command needs, wired to one engine."""

    engine: Engine
    session_factory: sessionmaker
    hub: ChangeHub
    state: LocalState
    records: RecordStore
    corrections: CorrectionWorkflow
    catalog: AcademicYearCatalog
    selector: AcademicYearSelector
    identity: LocalIdentityProvider
    roles: RoleService

    def require_user(self) -> Identity:
        """The signed-in identity; its role entry is created on first use."""
        identity = self.identity.current_identity()
        if identity is None:
            raise PermissionDenied("Sign in first with 'records-cli auth login'")
        self.roles.ensure_role(identity)
        return identity

    def require_admin(self) -> Identity:
        return self.roles.require_admin(self.require_user())


def build_services(
    engine: Engine,
    state: Optional[LocalState] = None,
    clock: Callable[[], int] = now_millis,
) -> Services:
    session_factory = get_session_factory(engine)
    hub = ChangeHub()
    hub.attach(session_factory)

    state = state or LocalState()
    catalog = AcademicYearCatalog(session_factory)
    selector = AcademicYearSelector(catalog, state)
    selector.load()

    return Services(
        engine=engine,
        session_factory=session_factory,
        hub=hub,
        state=state,
        records=RecordStore(session_factory, hub, clock),
        corrections=CorrectionWorkflow(session_factory, hub, clock),
        catalog=catalog,
        selector=selector,
        identity=LocalIdentityProvider(state),
        roles=RoleService(session_factory),
    )
