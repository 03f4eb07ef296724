"""
Unit tests for the privilege matching engine.
"""

import pytest
from unittest.mock import MagicMock, call, patch

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_privileges.app.privileges.engine import PrivilegeEngine, privilege_matches
from service_privileges.app.privileges.models import GrantedPrivilege, Privilege, RoleAssignment
from service_privileges.app.privileges.validation import sanitize
from shared.errors import (
    EmptyCollectionError, InvalidSelectorError, InvalidTypeError, StorageError, ValidationError
)
from shared.metrics import MetricsCollector


@pytest.fixture
def storage():
    """Mock storage adapter."""
    storage = MagicMock()
    storage.get_all_user_privileges.return_value = []
    return storage


@pytest.fixture
def engine(storage):
    """Create PrivilegeEngine instance."""
    return PrivilegeEngine(storage)


def granted(*privileges):
    return [sanitize(p) for p in privileges]


class TestHasPrivilege:
    """Test cases for has_privilege()."""

    @pytest.mark.parametrize("user_id", [None, "", "   ", 42, ["chris"]])
    def test_invalid_user_denies_without_storage_call(self, engine, storage, user_id):
        assert engine.has_privilege(user_id, {"name": "x"}) is False
        storage.get_all_user_privileges.assert_not_called()

    def test_invalid_user_denies_even_for_invalid_request(self, engine):
        assert engine.has_privilege(None, {"name": ""}) is False

    def test_validates_request(self, engine, storage):
        with pytest.raises(ValidationError):
            engine.has_privilege("chris", {"name": "read", "group": ""})
        storage.get_all_user_privileges.assert_not_called()

    def test_reads_grants_once_per_call(self, engine, storage):
        storage.get_all_user_privileges.return_value = granted({"name": "write"}, {"name": "read"})

        assert engine.has_privilege("chris", {"name": "read"}) is True
        storage.get_all_user_privileges.assert_called_once_with("chris")

    def test_no_grants_denies(self, engine):
        assert engine.has_privilege("chris", {"name": "read"}) is False

    @pytest.mark.parametrize("grant, request_", [
        ({"name": "*", "component": "*", "group": "*"}, {"name": "read"}),
        ({"name": "read", "component": "*", "group": "*"}, {"name": "read"}),
        ({"name": "*", "component": "matches", "group": "*"}, {"name": "read", "component": "matches"}),
        ({"name": "*", "component": "*", "group": "a-team"},
         {"name": "read", "component": "matches", "group": "a-team"}),
        ({"name": "read", "component": "matches", "group": "*"},
         {"name": "read", "component": "matches", "group": "a-team"}),
        ({"name": "read", "component": "*", "group": "a-team"},
         {"name": "read", "component": "matches", "group": "a-team"}),
        ({"name": "*", "component": "matches", "group": "a-team"},
         {"name": "read", "component": "matches", "group": "a-team"}),
        ({"name": "read", "component": "matches", "group": "a-team"},
         {"name": "read", "component": "matches", "group": "a-team"}),
    ])
    def test_wildcard_combinations(self, engine, storage, grant, request_):
        storage.get_all_user_privileges.return_value = granted(grant)
        assert engine.has_privilege("chris", request_) is True

    def test_all_wildcard_grant_matches_everything(self, engine, storage):
        storage.get_all_user_privileges.return_value = granted({"name": "*", "component": "*", "group": "*"})
        assert engine.has_privilege("chris", {"name": "read", "component": "matches", "group": "zcfc"}) is True

    def test_requested_wildcard_does_not_broaden_concrete_grant(self, engine, storage):
        storage.get_all_user_privileges.return_value = granted({"name": "read"})
        assert engine.has_privilege("chris", {"name": "*"}) is False

    def test_requested_wildcard_matches_granted_wildcard(self, engine, storage):
        storage.get_all_user_privileges.return_value = granted({"name": "*"})
        assert engine.has_privilege("chris", {"name": "*"}) is True

    def test_name_wildcard_without_component(self, engine, storage):
        storage.get_all_user_privileges.return_value = granted({"name": "*"})

        assert engine.has_privilege("chris", {"name": "read"}) is True
        assert engine.has_privilege("chris", {"name": "read", "component": "matches"}) is False

    def test_component_wildcard_without_group(self, engine, storage):
        storage.get_all_user_privileges.return_value = granted({"name": "*", "component": "*"})

        assert engine.has_privilege("chris", {"name": "read", "component": "matches"}) is True
        assert engine.has_privilege("chris", {"name": "write"}) is True
        assert engine.has_privilege("chris", {"name": "write", "group": "zcfc"}) is False

    def test_group_grant_does_not_satisfy_global_request(self, engine, storage):
        storage.get_all_user_privileges.return_value = granted({"name": "view", "component": "*", "group": "zcfc"})
        assert engine.has_privilege("chris", {"name": "view"}) is False

    def test_role_is_not_matched(self, engine, storage):
        storage.get_all_user_privileges.return_value = granted({"name": "read", "role": "admin"})
        assert engine.has_privilege("chris", {"name": "read", "role": "guest"}) is True

    def test_accepts_privilege_instances(self, engine, storage):
        storage.get_all_user_privileges.return_value = granted({"name": "read", "group": "*"})
        assert engine.has_privilege("chris", Privilege.from_values("read", group="fox")) is True

    def test_storage_errors_propagate(self, engine, storage):
        storage.get_all_user_privileges.side_effect = StorageError("down")
        with pytest.raises(StorageError):
            engine.has_privilege("chris", {"name": "read"})

    def test_records_metrics(self, storage):
        metrics = MetricsCollector("privileges")
        engine = PrivilegeEngine(storage, metrics=metrics)
        storage.get_all_user_privileges.return_value = granted({"name": "read"})

        engine.has_privilege("chris", {"name": "read"})
        engine.has_privilege("chris", {"name": "write"})

        assert metrics.registry.get_sample_value("privilege_checks_total", {"decision": "allow"}) == 1.0
        assert metrics.registry.get_sample_value("privilege_checks_total", {"decision": "deny"}) == 1.0


class TestPrivilegeMatches:
    """Test cases for the match predicate."""

    def test_requires_every_matched_field(self):
        grant = Privilege.from_values("read", "matches", "a-team")
        assert privilege_matches(grant, Privilege.from_values("read", "matches", "a-team"))
        assert not privilege_matches(grant, Privilege.from_values("read", "matches", "b-team"))
        assert not privilege_matches(grant, Privilege.from_values("read", "members", "a-team"))

    def test_absent_grant_field_does_not_match_concrete_request(self):
        assert not privilege_matches(Privilege.from_values("read"), Privilege.from_values("read", group="x"))


class TestHasAnyPrivilege:
    """Test cases for has_any_privilege()."""

    def test_stops_at_first_match(self, engine):
        with patch.object(engine, "has_privilege", return_value=True) as mock_check:
            assert engine.has_any_privilege("chris", [{"name": "a"}, {"name": "b"}]) is True
        mock_check.assert_called_once_with("chris", {"name": "a"})

    def test_checks_in_input_order_until_match(self, engine):
        with patch.object(engine, "has_privilege", side_effect=[False, True, True]) as mock_check:
            assert engine.has_any_privilege("chris", [{"name": "a"}, {"name": "b"}, {"name": "c"}]) is True
        assert mock_check.call_args_list == [call("chris", {"name": "a"}), call("chris", {"name": "b"})]

    def test_all_fail(self, engine):
        with patch.object(engine, "has_privilege", return_value=False) as mock_check:
            assert engine.has_any_privilege("chris", [{"name": "a"}, {"name": "b"}]) is False
        assert mock_check.call_count == 2

    def test_empty_sequence_denies(self, engine):
        assert engine.has_any_privilege("chris", []) is False

    def test_storage_read_count(self, engine, storage):
        storage.get_all_user_privileges.return_value = granted({"name": "a"})
        assert engine.has_any_privilege("chris", [{"name": "a"}, {"name": "b"}]) is True
        assert storage.get_all_user_privileges.call_count == 1


class TestHas:
    """Test cases for has() and can()."""

    def test_passes_name_only(self, engine):
        with patch.object(engine, "has_privilege", return_value=True) as mock_check:
            engine.has("chris", "read")
        mock_check.assert_called_once_with("chris", {"name": "read", "component": None, "group": None})

    def test_passes_component_and_group(self, engine):
        with patch.object(engine, "has_privilege", return_value=True) as mock_check:
            engine.has("chris", "read", "login", "a-team")
        mock_check.assert_called_once_with("chris", {"name": "read", "component": "login", "group": "a-team"})

    def test_passes_group_without_component(self, engine):
        with patch.object(engine, "has_privilege", return_value=True) as mock_check:
            engine.has("chris", "read", group="a-team")
        mock_check.assert_called_once_with("chris", {"name": "read", "component": None, "group": "a-team"})

    def test_validates_before_checking_user(self, engine):
        with pytest.raises(ValidationError):
            engine.has(None, "")

    def test_can_is_alias(self, engine):
        with patch.object(engine, "has", return_value=True) as mock_has:
            assert engine.can("chris", "view", "matches", "zcfc") is True
        mock_has.assert_called_once_with("chris", "view", "matches", "zcfc")


class TestHasAny:
    """Test cases for has_any() and can_any()."""

    def test_empty_names(self, engine):
        with pytest.raises(EmptyCollectionError, match="empty"):
            engine.has_any("chris", [])

    def test_string_names_rejected(self, engine):
        with pytest.raises(InvalidTypeError):
            engine.has_any("chris", "read")

    def test_checks_once_when_first_succeeds(self, engine):
        with patch.object(engine, "has_privilege", return_value=True) as mock_check:
            assert engine.has_any("chris", ["yawn", "bite"]) is True
        assert mock_check.call_count == 1

    def test_checks_twice_when_first_fails(self, engine):
        with patch.object(engine, "has_privilege", return_value=False) as mock_check:
            assert engine.has_any("chris", ["yawn", "bite"]) is False
        assert mock_check.call_count == 2

    def test_true_if_any_succeeds(self, engine):
        with patch.object(engine, "has_privilege", side_effect=[False, True]):
            assert engine.can_any("chris", ["yawn", "bite"]) is True


class TestGrant:
    """Test cases for grant() and grant_many()."""

    def test_returns_storage_id(self, engine, storage):
        storage.set_user_privilege.return_value = "1"
        assert engine.grant("chris", "read") == "1"

    def test_forwards_sanitized_privilege(self, engine, storage):
        engine.grant("chris", "test")
        storage.set_user_privilege.assert_called_once_with("chris", Privilege.from_values("test"))

    def test_forwards_every_field(self, engine, storage):
        engine.grant("chris", "read", "userList", "ajax", "coach")
        storage.set_user_privilege.assert_called_once_with(
            "chris", Privilege.from_values("read", "userList", "ajax", "coach")
        )

    @pytest.mark.parametrize("user_id", [None, "", 42])
    def test_invalid_user(self, engine, storage, user_id):
        with pytest.raises(InvalidTypeError):
            engine.grant(user_id, "read")
        storage.set_user_privilege.assert_not_called()

    def test_invalid_privilege(self, engine, storage):
        with pytest.raises(ValidationError):
            engine.grant("chris", "read", component="")
        storage.set_user_privilege.assert_not_called()

    def test_many_preserves_order(self, engine, storage):
        storage.set_user_privilege.side_effect = ["idA", "idB"]

        assert engine.grant_many("chris", ["a", "b"]) == ["idA", "idB"]
        assert storage.set_user_privilege.call_args_list == [
            call("chris", Privilege.from_values("a")),
            call("chris", Privilege.from_values("b")),
        ]

    def test_many_single_element(self, engine, storage):
        storage.set_user_privilege.return_value = "1"
        assert engine.grant_many("chris", ["read"]) == ["1"]

    def test_many_empty(self, engine):
        with pytest.raises(EmptyCollectionError, match="empty sequence given"):
            engine.grant_many("chris", [])

    def test_many_checks_user_first(self, engine):
        with pytest.raises(InvalidTypeError):
            engine.grant_many(None, [])

    def test_many_is_fail_fast_without_rollback(self, engine, storage):
        storage.set_user_privilege.return_value = "1"
        with pytest.raises(ValidationError):
            engine.grant_many("chris", ["a", " ", "c"])
        storage.set_user_privilege.assert_called_once_with("chris", Privilege.from_values("a"))
        storage.remove_user_privilege.assert_not_called()

    def test_records_metrics(self, storage):
        metrics = MetricsCollector("privileges")
        engine = PrivilegeEngine(storage, metrics=metrics)
        engine.grant("chris", "read")
        engine.revoke("chris", "1")
        assert metrics.registry.get_sample_value("privilege_grants_total") == 1.0
        assert metrics.registry.get_sample_value("privilege_revokes_total") == 1.0


class TestRevoke:
    """Test cases for revoke() and revoke_many()."""

    def test_returns_none(self, engine):
        assert engine.revoke("chris", "test") is None

    def test_forwards_to_storage(self, engine, storage):
        engine.revoke("chris", "test")
        storage.remove_user_privilege.assert_called_once_with("chris", "test")

    def test_invalid_user(self, engine):
        with pytest.raises(InvalidTypeError):
            engine.revoke(None, "test")

    @pytest.mark.parametrize("privilege_id", ["", "  ", None, 5])
    def test_invalid_privilege_id(self, engine, storage, privilege_id):
        with pytest.raises(ValidationError):
            engine.revoke("chris", privilege_id)
        storage.remove_user_privilege.assert_not_called()

    def test_many_in_order(self, engine, storage):
        assert engine.revoke_many("chris", ["a", "b"]) is None
        assert storage.remove_user_privilege.call_args_list == [call("chris", "a"), call("chris", "b")]

    def test_many_empty(self, engine):
        with pytest.raises(EmptyCollectionError, match="empty sequence given"):
            engine.revoke_many("chris", [])

    def test_grants_lists_storage_grants(self, engine, storage):
        grant = GrantedPrivilege("1", "chris", Privilege.from_values("read"))
        storage.get_user_grants.return_value = [grant]

        assert engine.grants("chris") == [grant]
        storage.get_user_grants.assert_called_once_with("chris")

    @pytest.mark.parametrize("user_id", [None, "", 42])
    def test_grants_invalid_user(self, engine, storage, user_id):
        with pytest.raises(InvalidTypeError):
            engine.grants(user_id)
        storage.get_user_grants.assert_not_called()


class TestRegistry:
    """Test cases for register(), exists() and pluck()."""

    def test_register_forwards_sanitized(self, engine, storage):
        storage.register.return_value = "1"
        assert engine.register({"name": "test"}) == "1"
        storage.register.assert_called_once_with(Privilege.from_values("test"))

    def test_register_validates(self, engine, storage):
        with pytest.raises(ValidationError):
            engine.register({"component": "A"})
        storage.register.assert_not_called()

    def test_exists_forwards_selector(self, engine, storage):
        storage.exists.return_value = True
        assert engine.exists({"component": "A"}) is True
        storage.exists.assert_called_once_with({"component": "A"})

    def test_exists_rejects_unknown_keys(self, engine, storage):
        with pytest.raises(InvalidSelectorError, match="(?i)invalid selector"):
            engine.exists({"test": "A"})
        storage.exists.assert_not_called()

    def test_pluck_forwards_filter(self, engine, storage):
        storage.filter.return_value = granted({"name": "create", "component": "A", "group": "a-team"})
        engine.pluck("group", {"component": "A"})
        storage.filter.assert_called_once_with({"component": "A"})

    def test_pluck_groups(self, engine, storage):
        storage.filter.return_value = granted(
            {"name": "create", "component": "A", "group": "a-team"},
            {"name": "create", "component": "A", "group": "b-team"},
            {"name": "read", "component": "A", "group": None},
        )
        assert engine.pluck("group", {"component": "A"}) == ["a-team", "b-team", None]

    def test_pluck_deduplicates_in_first_seen_order(self, engine, storage):
        storage.filter.return_value = granted(
            {"name": "read", "component": "B", "group": "a-team"},
            {"name": "create", "component": "A", "group": "a-team"},
            {"name": "read", "component": "C", "group": "a-team"},
        )
        assert engine.pluck("name", {"group": "a-team"}) == ["read", "create"]

    def test_pluck_components(self, engine, storage):
        storage.filter.return_value = granted(
            {"name": "create", "component": "A", "group": "a-team"},
            {"name": "create", "component": "B", "group": "b-team"},
            {"name": "create", "component": "C", "group": None},
        )
        assert engine.pluck("component", {"name": "create"}) == ["A", "B", "C"]

    def test_pluck_without_filter(self, engine, storage):
        storage.filter.return_value = []
        assert engine.pluck("name") == []
        storage.filter.assert_called_once_with({})

    @pytest.mark.parametrize("property_", ["role", "extra", ""])
    def test_pluck_rejects_unknown_property(self, engine, property_):
        with pytest.raises(ValidationError):
            engine.pluck(property_, {})


class TestRoles:
    """Test cases for role bookkeeping."""

    def test_register_role_requires_name(self, engine):
        with pytest.raises(ValidationError):
            engine.register_role(None)

    def test_register_role_rejects_empty_group(self, engine):
        with pytest.raises(ValidationError):
            engine.register_role("admin", "")

    def test_register_role_without_privileges(self, engine, storage):
        storage.register_role.return_value = "1"
        assert engine.register_role("test") == "1"
        storage.register_role.assert_called_once_with("test", None, None)

    def test_register_role_with_template(self, engine, storage):
        engine.register_role("admin", None, {"name": "read", "component": "*", "group": "*"})
        storage.register_role.assert_called_once_with(
            "admin", None, Privilege.from_values("read", "*", "*")
        )

    def test_register_role_validates_template(self, engine, storage):
        with pytest.raises(ValidationError):
            engine.register_role("admin", None, {"name": ""})
        storage.register_role.assert_not_called()

    def test_register_role_many(self, engine, storage):
        storage.register_role.side_effect = ["1", "2"]
        assert engine.register_role_many("test", None, [{"name": "test"}, {"name": "test-2"}]) == ["1", "2"]
        assert storage.register_role.call_args_list[-1] == call("test", None, Privilege.from_values("test-2"))

    def test_assign_role_forwards(self, engine, storage):
        engine.assign_role("chris", "admin", "a-team")
        storage.assign_role.assert_called_once_with("chris", "admin", "a-team")

    def test_assign_role_defaults_group(self, engine, storage):
        engine.assign_role("chris", "admin")
        storage.assign_role.assert_called_once_with("chris", "admin", None)

    @pytest.mark.parametrize("user_id, role", [(None, "admin"), ("chris", None), ("", "admin")])
    def test_assign_role_validates(self, engine, user_id, role):
        with pytest.raises(ValidationError):
            engine.assign_role(user_id, role)

    def test_assign_roles_returns_ids(self, engine, storage):
        storage.assign_role.side_effect = ["1", "2"]
        assert engine.assign_roles("chris", ["reader", "writer"]) == ["1", "2"]

    def test_has_role_not_found(self, engine, storage):
        storage.get_role.return_value = None
        assert engine.has_role("chris", "writer") is False
        storage.get_role.assert_called_once_with("chris", "writer", None)

    def test_has_role_found(self, engine, storage):
        storage.get_role.return_value = RoleAssignment("1", "chris", "admin")
        assert engine.has_role("chris", "admin") is True

    @pytest.mark.parametrize("args", [(None, "admin"), ("chris", None), ("chris", "admin", "")])
    def test_has_role_validates(self, engine, args):
        with pytest.raises(ValidationError):
            engine.has_role(*args)
