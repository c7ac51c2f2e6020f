import pytest

from records_cli.auth import Identity, LocalIdentityProvider
from records_cli.errors import (
    IdentityUnavailable,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from records_cli.utils.local_state import LocalState


def test_identity_label_fallbacks():
    assert Identity("u1", email="a@b.c", display_name="Ani").label == "a@b.c"
    assert Identity("u1", display_name="Ani").label == "Ani"
    assert Identity("u1").label == "Unknown User"


def test_first_access_creates_a_user_role(services, user):
    assert services.roles.get_role(user.uid) is None

    assert services.roles.ensure_role(user) == "user"
    assert services.roles.get_role(user.uid) == "user"
    assert services.roles.is_admin(user) is False


def test_bootstrap_only_once(services, admin, user):
    assert services.roles.is_admin(admin)

    with pytest.raises(PermissionDenied):
        services.roles.bootstrap_admin(user)


def test_admin_operations_require_admin(services, admin, user):
    services.roles.ensure_role(user)

    with pytest.raises(PermissionDenied):
        services.roles.require_admin(user)
    with pytest.raises(PermissionDenied):
        services.roles.require_admin(None)
    with pytest.raises(PermissionDenied):
        services.roles.register_user(user, "u2", "u2@sekolah.sch.id")
    with pytest.raises(PermissionDenied):
        services.roles.set_role(user, admin.uid, "user")


def test_register_and_promote(services, admin):
    services.roles.register_user(admin, "u2", "u2@sekolah.sch.id")
    with pytest.raises(ValidationError):
        services.roles.register_user(admin, "u2", "u2@sekolah.sch.id")

    services.roles.set_role(admin, "u2", "admin")

    assert services.roles.get_role("u2") == "admin"
    assert [u.user_id for u in services.roles.list_users()] == ["admin-1", "u2"]


def test_set_role_checks(services, admin):
    with pytest.raises(ValidationError):
        services.roles.set_role(admin, "u2", "owner")
    with pytest.raises(PermissionDenied):
        services.roles.set_role(admin, admin.uid, "user")
    with pytest.raises(NotFound):
        services.roles.set_role(admin, "nobody", "admin")


def test_sign_in_is_persisted_and_announced(tmp_path):
    provider = LocalIdentityProvider(LocalState(str(tmp_path / "state")))
    seen = []
    unsubscribe = provider.on_identity_change(seen.append)

    identity = provider.sign_in("u1", "guru@sekolah.sch.id")
    restored = LocalIdentityProvider(LocalState(str(tmp_path / "state")))
    assert restored.current_identity() == identity

    provider.sign_out()
    unsubscribe()
    provider.sign_in("u2")

    assert seen == [identity, None]
    assert restored.current_identity() == Identity("u2")


def test_require_user_needs_a_sign_in(services):
    with pytest.raises(PermissionDenied):
        services.require_user()

    services.identity.sign_in("u1", "guru@sekolah.sch.id")

    assert services.require_user().uid == "u1"
    assert services.roles.get_role("u1") == "user"


def test_corrupt_state_file_is_identity_unavailable(tmp_path):
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    (state_dir / "state.json").write_text("{not json", encoding="utf-8")

    provider = LocalIdentityProvider(LocalState(str(state_dir)))

    with pytest.raises(IdentityUnavailable):
        provider.current_identity()


def test_unwritable_state_is_identity_unavailable(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    provider = LocalIdentityProvider(LocalState(str(blocker)))
    seen = []
    provider.on_identity_change(seen.append)

    with pytest.raises(IdentityUnavailable):
        provider.sign_in("u1", "guru@sekolah.sch.id")

    assert seen == []
