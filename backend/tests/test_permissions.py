"""Tests for actors, the permission guard and field-level write policy.

Covers:
- ActorContext.can() exact, resource wildcard and global wildcard matches
- ActorContext.is_role() hierarchy and undefined requirements
- guard() fail-closed handling of missing actors
- writable_payload() key filtering
"""

import pytest

from resourceforge.auth import ActorContext, actor_is_role, guard, writable_payload
from resourceforge.errors import Unauthorized


# ── can / has_permission ─────────────────────────────────────────────────────


class TestCan:
    def test_exact_permission(self):
        actor = ActorContext(user_id="u1", permissions={"contact.index"})
        assert actor.can("contact.index")
        assert not actor.can("contact.export")

    def test_resource_wildcard(self):
        actor = ActorContext(user_id="u1", permissions={"contact.*"})
        assert actor.can("contact.delete_all")
        assert not actor.can("company.index")

    def test_global_wildcard(self):
        actor = ActorContext(user_id="u1", permissions={"*"})
        assert actor.can("anything.at_all")

    def test_system_actor_holds_everything(self):
        assert ActorContext(permissions={"*"}, is_system=True).can("contact.import")

    def test_has_permission_is_exact(self):
        actor = ActorContext(user_id="u1", permissions={"*"})
        assert not actor.has_permission("groups.@")
        actor.permissions.add("groups.@")
        assert actor.has_permission("groups.@")


# ── is_role ──────────────────────────────────────────────────────────────────


class TestIsRole:
    @pytest.mark.parametrize("required", [None, ""])
    def test_undefined_requirement_always_passes(self, required):
        assert ActorContext(user_id="u1", roles=[]).is_role(required)

    def test_higher_role_satisfies_lower(self):
        assert ActorContext(user_id="u1", roles=["admin"]).is_role("manager")

    def test_lower_role_fails(self):
        assert not ActorContext(user_id="u1", roles=["user"]).is_role("manager")

    def test_unknown_role_needs_exact_match(self):
        assert ActorContext(user_id="u1", roles=["auditor"]).is_role("auditor")
        assert not ActorContext(user_id="u1", roles=["admin"]).is_role("auditor")

    def test_actor_is_role_without_actor(self):
        assert actor_is_role(None, None)
        assert not actor_is_role(None, "user")


# ── guard ────────────────────────────────────────────────────────────────────


class TestGuard:
    def test_allows_permitted_actor(self, member):
        guard(member, "contact.index")

    def test_denies_with_no_privileges(self, nobody):
        with pytest.raises(Unauthorized) as exc_info:
            guard(nobody, "contact.index")
        assert exc_info.value.message == "No privileges."
        assert exc_info.value.status_code == 403

    def test_missing_actor_fails_closed(self):
        with pytest.raises(Unauthorized, match="Authentication required"):
            guard(None, "contact.index")

    def test_missing_actor_allowed_when_anonymous_enabled(self):
        guard(None, "contact.index", allow_anonymous=True)


# ── writable_payload ─────────────────────────────────────────────────────────


class TestWritablePayload:
    def test_drops_non_editable_and_unknown_keys(self, contact, member):
        data = {
            "name": "Ada",
            "user_ids": "someone-else",
            "created_at": "2020-01-01",
            "bogus": 1,
            "_actions": "x",
            "id": "forced",
        }
        assert writable_payload(data, contact, member) == {"name": "Ada"}

    def test_drops_fields_whose_role_actor_lacks(self, contact, member):
        result = writable_payload({"name": "Ada", "salary": 10}, contact, member)
        assert "salary" not in result

    def test_keeps_fields_for_sufficient_role(self, contact, admin):
        result = writable_payload({"name": "Ada", "salary": 10}, contact, admin)
        assert result == {"name": "Ada", "salary": 10}

    def test_does_not_mutate_input(self, contact, member):
        data = {"name": "Ada", "salary": 10}
        writable_payload(data, contact, member)
        assert data == {"name": "Ada", "salary": 10}
