"""End-to-end access scenario against the store.

User A creates "Acme" and stores an entry. User B, with no membership, is
denied. B is granted access and can read it. Revoking A's membership takes
effect on A's very next fetch. Every read re-checks active membership, so
there is no window where a revoked member still sees data.
"""

from __future__ import annotations

from _helpers import make_entry, make_user

from vault.models import Outcome
from vault.store import VaultStore


def test_acme_membership_lifecycle(store: VaultStore) -> None:
    a = make_user(store, "a@acme.test", first="Alice")
    b = make_user(store, "b@acme.test", first="Bob")

    acme = store.create_organization("Acme", a).value
    membership = store.get_membership(acme.id, a.id)
    assert membership.is_admin and membership.is_active
    assert [o.name for o in store.list_orgs_for_user(a.id).value] == ["Acme"]

    entry = store.create_secret(acme.id, a.id, make_entry("Acme VPN")).value

    # B never joined Acme
    assert store.authorize_and_fetch_secret(b.id, entry.id).outcome is Outcome.DENIED
    assert store.list_secrets_for_org(acme.id, b.id).outcome is Outcome.DENIED

    # A, the creator, is allowed
    fetched = store.authorize_and_fetch_secret(a.id, entry.id)
    assert fetched.ok
    assert fetched.value.title == "Acme VPN"

    # A grants B access
    assert store.add_member(acme.id, b.id, acting_user_id=a.id).ok
    assert store.authorize_and_fetch_secret(b.id, entry.id).ok

    # Revoke A
    assert store.set_membership_active(acme.id, a.id, False).ok
    assert store.authorize_and_fetch_secret(a.id, entry.id).outcome is Outcome.DENIED
    assert store.list_orgs_for_user(a.id).outcome is Outcome.NOT_FOUND
    assert "a@acme.test" not in [m.email for m in store.list_users_for_org(acme.id).value]

    # B is unaffected
    assert store.authorize_and_fetch_secret(b.id, entry.id).ok


def test_only_owning_org_members_see_each_entry(store: VaultStore) -> None:
    """For every (user, entry) pair, access holds iff the user is an active member of the entry's org."""
    users = [make_user(store, f"u{i}@example.com") for i in range(3)]
    orgs = [store.create_organization(f"Org {i}", users[i]).value for i in range(3)]
    entries = [store.create_secret(orgs[i].id, users[i].id, make_entry(f"Entry {i}")).value for i in range(3)]

    # users[0] also joins Org 1, then is revoked from Org 0
    store.add_member(orgs[1].id, users[0].id, acting_user_id=users[1].id)
    store.set_membership_active(orgs[0].id, users[0].id, False)

    active = {
        (users[0].id, orgs[1].id),
        (users[1].id, orgs[1].id),
        (users[2].id, orgs[2].id),
    }
    for user in users:
        for entry in entries:
            result = store.authorize_and_fetch_secret(user.id, entry.id)
            if (user.id, entry.org_id) in active:
                assert result.ok, (user.email, entry.title)
            else:
                assert result.outcome is Outcome.DENIED, (user.email, entry.title)
