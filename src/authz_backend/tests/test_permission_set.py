"""
Tests for grouped permission sets and legacy document parsing.
"""

import json

from authz_backend.permissions.permission_set import (
    PermissionSet,
    build_permission_set,
    expand_action,
    is_granted,
    parse_permission_document,
)


class TestExpandAction:

    def test_wildcard_expands_to_crud(self):
        assert expand_action("*") == ("create", "read", "update", "delete")

    def test_single_action(self):
        assert expand_action("Read") == ("read",)

    def test_unknown_action(self):
        assert expand_action("approve") == ()


class TestPermissionSet:

    def test_empty_set_grants_nothing(self):
        permission_set = PermissionSet()
        assert not permission_set.is_granted("users", "read")
        assert permission_set.is_empty()

    def test_unset_flag_is_not_granted(self):
        permission_set = PermissionSet.model_validate({"users": {"read": True}})
        assert permission_set.is_granted("users", "read")
        assert not permission_set.is_granted("users", "update")

    def test_false_flag_is_not_granted(self):
        permission_set = PermissionSet.model_validate({"reports": {"read": False}})
        assert not permission_set.is_granted("reports", "read")

    def test_resource_lookup_is_case_insensitive(self):
        permission_set = build_permission_set([("Users", "read"), ("Invoice", "update")])
        assert permission_set.is_granted("USERS", "read")
        assert permission_set.is_granted("invoice", "update")
        assert permission_set.custom is not None and "invoice" in permission_set.custom

    def test_custom_resource(self):
        permission_set = build_permission_set([("invoice", "*")])
        for action in ("create", "read", "update", "delete"):
            assert is_granted(permission_set, "invoice", action)
        assert not permission_set.is_granted("payroll", "read")

    def test_unknown_action_never_granted(self):
        permission_set = build_permission_set([("users", "*")])
        assert not permission_set.is_granted("users", "approve")

    def test_build_ignores_unknown_actions(self):
        permission_set = build_permission_set([("users", "approve")])
        assert permission_set.is_empty()

    def test_grants_flatten(self):
        permission_set = build_permission_set([("users", "read"), ("invoice", "update"), ("audit", "read")])
        assert permission_set.grants() == [("users", "read"), ("audit", "read"), ("invoice", "update")]


class TestLegacyDocument:

    def test_json_layout_omits_unset_flags(self):
        permission_set = build_permission_set([("users", "read"), ("zeta", "create"), ("alpha", "delete")])
        data = json.loads(permission_set.to_json())

        assert data == {
            "users": {"read": True},
            "custom": {"alpha": {"delete": True}, "zeta": {"create": True}},
        }
        assert list(data["custom"]) == ["alpha", "zeta"]

    def test_parse_document(self):
        document = '{"users": {"read": true, "update": true}, "custom": {"invoice": {"read": true}}}'
        permission_set = parse_permission_document(document)

        assert permission_set.is_granted("users", "update")
        assert permission_set.is_granted("invoice", "read")
        assert not permission_set.is_granted("users", "delete")

    def test_parse_bytes(self):
        assert parse_permission_document(b'{"roles": {"read": true}}').is_granted("roles", "read")

    def test_malformed_document_is_empty(self):
        assert parse_permission_document("{not json").is_empty()
        assert parse_permission_document('{"users": "everything"}').is_empty()

    def test_missing_document_is_empty(self):
        assert parse_permission_document(None).is_empty()
        assert parse_permission_document("").is_empty()

    def test_unknown_top_level_keys_ignored(self):
        permission_set = parse_permission_document('{"menus": {"read": true}, "users": {"read": true}}')
        assert permission_set.is_granted("users", "read")
        assert not permission_set.is_granted("menus", "read")
