"""
Tests for company memberships.
"""

import pytest

from authz_backend.permissions.cache import company_members_key
from authz_backend.permissions.membership import MembershipStore
from authz_backend.repositories.base import DuplicateError, NotFoundError
from authz_backend.tests.fixtures import make_company, make_membership, make_role, make_user


@pytest.fixture
def store(test_db, cache):
    return MembershipStore(test_db, cache)


@pytest.fixture
def acme(test_db):
    return make_company(test_db, "Acme")


class TestMembershipStore:

    @pytest.mark.asyncio
    async def test_add_member(self, test_db, store, cache, acme):
        role = make_role(test_db, "company_admin", company_id=acme.id)
        user = make_user(test_db, "ann@example.com")

        member = await store.add_member(user.id, acme.id, role.id, is_owner=True)
        await cache.invalidations.drain()

        assert member.is_active is True
        assert member.status == "active"
        assert store.active_membership(user.id, acme.id).id == member.id

    @pytest.mark.asyncio
    async def test_one_active_membership_per_company(self, test_db, store, acme):
        role = make_role(test_db, "company_admin", company_id=acme.id)
        user = make_user(test_db, "ann@example.com")
        make_membership(test_db, user, acme, role)

        with pytest.raises(DuplicateError):
            await store.add_member(user.id, acme.id, role.id)

    @pytest.mark.asyncio
    async def test_uppercase_company_id_stored_canonical(self, test_db, store, cache, evaluator, acme):
        role = make_role(test_db, "company_admin", grants=[("invoice", "update")], company_id=acme.id)
        user = make_user(test_db, "ann@example.com")

        member = await store.add_member(user.id, acme.id.upper(), role.id)
        await cache.invalidations.drain()

        assert member.company_id == acme.id
        assert store.active_membership(user.id, acme.id.upper()).id == member.id
        assert [entry.user_id for entry in await store.list_members(acme.id.upper())] == [user.id]
        assert await evaluator.is_allowed(user.id, "invoice", "update", acme.id) is True

        with pytest.raises(DuplicateError):
            await store.add_member(user.id, acme.id.upper(), role.id)

    @pytest.mark.asyncio
    async def test_rejoin_after_deactivation(self, test_db, store, cache, acme):
        role = make_role(test_db, "company_admin", company_id=acme.id)
        user = make_user(test_db, "ann@example.com")
        make_membership(test_db, user, acme, role, is_active=False)

        await store.add_member(user.id, acme.id, role.id)
        await cache.invalidations.drain()

        assert store.active_membership(user.id, acme.id) is not None

    @pytest.mark.asyncio
    async def test_role_of_other_company_rejected(self, test_db, store, acme):
        globex = make_company(test_db, "Globex")
        role = make_role(test_db, "globex_admin", company_id=globex.id)
        user = make_user(test_db, "ann@example.com")

        with pytest.raises(ValueError):
            await store.add_member(user.id, acme.id, role.id)

    @pytest.mark.asyncio
    async def test_unknown_role(self, test_db, store, acme):
        user = make_user(test_db, "ann@example.com")

        with pytest.raises(NotFoundError):
            await store.add_member(user.id, acme.id, "missing")

    @pytest.mark.asyncio
    async def test_change_member_role(self, test_db, store, cache, acme):
        admin = make_role(test_db, "company_admin", company_id=acme.id)
        clerk = make_role(test_db, "clerk", company_id=acme.id)
        user = make_user(test_db, "ann@example.com")
        make_membership(test_db, user, acme, admin)

        member = await store.change_member_role(user.id, acme.id, clerk.id)
        await cache.invalidations.drain()

        assert member.role_id == clerk.id

    @pytest.mark.asyncio
    async def test_change_role_without_membership(self, test_db, store, acme):
        clerk = make_role(test_db, "clerk", company_id=acme.id)

        with pytest.raises(NotFoundError):
            await store.change_member_role("missing", acme.id, clerk.id)

    @pytest.mark.asyncio
    async def test_deactivate_member(self, test_db, store, cache, acme):
        role = make_role(test_db, "company_admin", company_id=acme.id)
        user = make_user(test_db, "ann@example.com")
        make_membership(test_db, user, acme, role)

        assert await store.deactivate_member(user.id, acme.id) is True
        assert await store.deactivate_member(user.id, acme.id) is False
        await cache.invalidations.drain()

        assert store.active_membership(user.id, acme.id) is None


class TestMemberList:

    @pytest.mark.asyncio
    async def test_list_members_cached(self, test_db, store, mock_cache, acme):
        role = make_role(test_db, "company_admin", company_id=acme.id)
        user = make_user(test_db, "ann@example.com")
        make_membership(test_db, user, acme, role)

        members = await store.list_members(acme.id)

        assert [(m.user_id, m.role_name) for m in members] == [(user.id, "company_admin")]
        assert company_members_key(acme.id) in mock_cache.data

        # Served from the cache while the entry lives
        await store.list_members(acme.id)
        assert len([entry for entry in mock_cache.call_log if entry[0] == 'set']) == 1

    @pytest.mark.asyncio
    async def test_write_invalidates_member_list(self, test_db, store, cache, mock_cache, acme):
        role = make_role(test_db, "company_admin", company_id=acme.id)
        ann = make_user(test_db, "ann@example.com")
        bob = make_user(test_db, "bob@example.com")
        make_membership(test_db, ann, acme, role)
        await store.list_members(acme.id)

        await store.add_member(bob.id, acme.id, role.id)
        await cache.invalidations.drain()

        assert company_members_key(acme.id) not in mock_cache.data
        assert {m.user_id for m in await store.list_members(acme.id)} == {ann.id, bob.id}

    @pytest.mark.asyncio
    async def test_inactive_members_hidden(self, test_db, store, acme):
        role = make_role(test_db, "company_admin", company_id=acme.id)
        user = make_user(test_db, "ann@example.com")
        make_membership(test_db, user, acme, role, is_active=False)

        assert await store.list_members(acme.id) == []
