"""
Test Offline Policies

Verifies policy parsing, duration handling and merging of several
policies into one ACLDocument.
"""

import json
from datetime import timedelta

import pytest

from vaultviewer.core.errors import PolicyParseError
from vaultviewer.core.policy import (
    Policy,
    PolicyType,
    build_acl,
    load_policy_file,
    merge_rules,
    parse_duration,
    parse_policy,
)
from vaultviewer.core.query import MatchSource


class TestParseDuration:

    @pytest.mark.parametrize("value,expected", [
        (None, timedelta(0)),
        ("", timedelta(0)),
        (90, timedelta(seconds=90)),
        ("45", timedelta(seconds=45)),
        ("30s", timedelta(seconds=30)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5h", timedelta(minutes=90)),
        ("2d", timedelta(days=2)),
        ("250ms", timedelta(milliseconds=250)),
    ])
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["abc", "1h 30m", "10x", "h", True, [1]])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)

    @pytest.mark.parametrize("value", ["999999999999d", "9" * 40, 1e20, 10 ** 30])
    def test_out_of_range(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestParsePolicy:
    """Test suite for parse_policy"""

    def test_capabilities(self):
        policy = parse_policy("app", {
            "path": {"secret/data/app": {"capabilities": ["read", "list"]}}
        })

        assert policy.name == "app"
        assert len(policy.paths) == 1
        rule = policy.paths[0]
        assert rule.path == "secret/data/app"
        assert not rule.is_prefix
        assert rule.capabilities.mask == 4 | 32

    def test_prefix_and_leading_slash(self):
        policy = parse_policy("app", {"path": {"/secret/*": {"capabilities": ["list"]}}})
        rule = policy.paths[0]

        assert rule.path == "secret/"
        assert rule.is_prefix

    def test_star_alone_covers_everything(self):
        rule = parse_policy("all", {"path": {"*": {"capabilities": ["read"]}}}).paths[0]

        assert rule.path == ""
        assert rule.is_prefix

    def test_legacy_policy_key(self):
        rule = parse_policy("legacy", {"path": {"secret/x": {"policy": "write"}}}).paths[0]

        assert set(rule.capability_names) == {"read", "list", "create", "update", "delete"}
        assert not rule.capabilities.has_capability("sudo")

    def test_invalid_legacy_policy(self):
        with pytest.raises(PolicyParseError):
            parse_policy("legacy", {"path": {"secret/x": {"policy": "admin"}}})

    def test_list_of_path_blocks(self):
        policy = parse_policy("blocks", {"path": [
            {"a/": {"capabilities": ["read"]}},
            {"b/*": {"capabilities": ["list"]}},
        ]})

        assert [r.path for r in policy.paths] == ["a/", "b/"]

    def test_constraints(self):
        rule = parse_policy("app", {"path": {"secret/data/*": {
            "capabilities": ["create", "update"],
            "min_wrapping_ttl": "1m",
            "max_wrapping_ttl": "1h",
            "allowed_parameters": {"ttl": ["30m", "1h"], "*": []},
            "denied_parameters": {"admin": "true"},
            "required_parameters": ["owner"],
            "mfa_methods": ["duo"],
        }}}).paths[0]

        assert rule.min_wrapping_ttl == timedelta(minutes=1)
        assert rule.max_wrapping_ttl == timedelta(hours=1)
        assert rule.allowed_parameters == {"ttl": ("30m", "1h"), "*": ()}
        assert rule.denied_parameters == {"admin": ("true",)}
        assert rule.required_parameters == frozenset({"owner"})
        assert rule.mfa_methods == ("duo",)

    def test_max_below_min_ttl(self):
        with pytest.raises(PolicyParseError):
            parse_policy("app", {"path": {"secret/x": {
                "capabilities": ["read"],
                "min_wrapping_ttl": "1h",
                "max_wrapping_ttl": "1m",
            }}})

    def test_huge_duration(self):
        with pytest.raises(PolicyParseError) as exc_info:
            parse_policy("p", {"path": {"a": {
                "capabilities": ["read"],
                "max_wrapping_ttl": "999999999999d",
            }}})

        assert exc_info.value.path == "a"

    def test_huge_control_group_ttl(self):
        with pytest.raises(PolicyParseError):
            parse_policy("gated", {"path": {"secret/x": {
                "capabilities": ["read"],
                "control_group": {"ttl": "99999999999999h", "factor": {"ops": {}}},
            }}})

    def test_bad_duration(self):
        with pytest.raises(PolicyParseError) as exc_info:
            parse_policy("app", {"path": {"secret/x": {"max_wrapping_ttl": "soon"}}})

        assert exc_info.value.policy == "app"
        assert exc_info.value.path == "secret/x"

    def test_deny_drops_constraints(self):
        rule = parse_policy("app", {"path": {"secret/x": {
            "capabilities": ["deny"],
            "required_parameters": ["owner"],
        }}}).paths[0]

        assert rule.is_denied
        assert rule.required_parameters == frozenset()

    def test_control_group(self):
        rule = parse_policy("gated", {"path": {"secret/prod/*": {
            "capabilities": ["read"],
            "control_group": {
                "ttl": "4h",
                "factor": {
                    "ops": {
                        "identity": {"group_names": ["ops"], "approvals": 2},
                        "controlled_capabilities": ["read"],
                    }
                },
            },
        }}}).paths[0]

        group = rule.control_group
        assert group.ttl == timedelta(hours=4)
        assert len(group.factors) == 1
        factor = group.factors[0]
        assert factor.name == "ops"
        assert factor.identity.group_names == ("ops",)
        assert factor.identity.approvals_required == 2
        assert factor.controlled_capabilities == ("read",)

    def test_control_group_requires_factor(self):
        with pytest.raises(PolicyParseError):
            parse_policy("gated", {"path": {"secret/x": {
                "capabilities": ["read"],
                "control_group": {"ttl": "1h"},
            }}})

    def test_capabilities_must_be_strings(self):
        with pytest.raises(PolicyParseError):
            parse_policy("app", {"path": {"secret/x": {"capabilities": [1, 2]}}})

    def test_templated(self):
        policy = parse_policy("tmpl", {"path": {
            "secret/data/{{identity.entity.name}}/*": {"capabilities": ["read"]}
        }})

        assert policy.templated

    def test_document_must_be_mapping(self):
        with pytest.raises(PolicyParseError):
            parse_policy("bad", ["path"])


class TestBuildACL:
    """Merging policies into one document"""

    def test_partitions(self):
        document = build_acl([parse_policy("app", {"path": {
            "secret/data/app": {"capabilities": ["read"]},
            "kv/*": {"capabilities": ["list"]},
            "secret/+/config": {"capabilities": ["read"]},
        }})])

        assert document.exact_paths() == ["secret/data/app"]
        assert document.prefix_paths() == ["kv/"]
        assert [r.path for r in document.wildcard_rules] == ["secret/+/config"]
        assert not document.root

    def test_union(self):
        a = parse_policy("a", {"path": {"kv/*": {"capabilities": ["read"]}}})
        b = parse_policy("b", {"path": {"kv/*": {"capabilities": ["list"]}}})

        rule = build_acl([a, b]).prefix_rules.find_exact("kv/")

        assert rule.capabilities.mask == 4 | 32

    def test_deny_wins(self):
        grant = parse_policy("grant", {"path": {"kv/secret": {"capabilities": ["read", "update"]}}})
        deny = parse_policy("deny", {"path": {"kv/secret": {"capabilities": ["deny"]}}})

        for policies in ([grant, deny], [deny, grant]):
            result = build_acl(policies).query("kv/secret")
            assert result.source == MatchSource.EXACT
            assert not result.allowed

    def test_order_independent(self):
        a = parse_policy("a", {"path": {
            "kv/*": {"capabilities": ["read"], "allowed_parameters": {"x": ["1"]}},
        }})
        b = parse_policy("b", {"path": {
            "kv/*": {"capabilities": ["list"], "allowed_parameters": {"x": ["2"]}},
            "secret/x": {"capabilities": ["read"]},
        }})

        assert build_acl([a, b]).to_dict() == build_acl([b, a]).to_dict()

    def test_same_path_exact_and_prefix_are_distinct(self):
        document = build_acl([parse_policy("app", {"path": {
            "kv/app": {"capabilities": ["read"]},
            "kv/app*": {"capabilities": ["list"]},
        }})])

        assert document.exact_rules.find_exact("kv/app").capability_names == ["read"]
        assert document.prefix_rules.find_exact("kv/app").capability_names == ["list"]

    def test_root_policy(self):
        document = build_acl([Policy(name="root")])

        assert document.root
        assert document.query("anything").allowed

    def test_non_acl_policies_skipped(self):
        egp = Policy(
            name="egp",
            paths=parse_policy("egp", {"path": {"kv/*": {"capabilities": ["read"]}}}).paths,
            type=PolicyType.EGP,
        )

        assert build_acl([egp]).is_empty

    def test_merge_wrapping_ttls(self):
        a = parse_policy("a", {"path": {"kv/x": {
            "capabilities": ["read"], "min_wrapping_ttl": "10s", "max_wrapping_ttl": "1h",
        }}}).paths[0]
        b = parse_policy("b", {"path": {"kv/x": {
            "capabilities": ["read"], "min_wrapping_ttl": "5s", "max_wrapping_ttl": "2h",
        }}}).paths[0]
        c = parse_policy("c", {"path": {"kv/x": {"capabilities": ["list"]}}}).paths[0]

        merged = merge_rules(merge_rules(a, b), c)

        assert merged.min_wrapping_ttl == timedelta(seconds=5)
        assert merged.max_wrapping_ttl == timedelta(hours=2)
        assert merged.capabilities.mask == 4 | 32


class TestLoadPolicyFile:

    def test_json_file(self, tmp_path):
        path = tmp_path / "app-read.json"
        path.write_text(json.dumps({"path": {"secret/data/app": {"capabilities": ["read"]}}}))

        policy = load_policy_file(path)

        assert policy.name == "app-read"
        assert policy.paths[0].path == "secret/data/app"
        assert "secret/data/app" in policy.raw

    def test_yaml_file_with_name(self, tmp_path):
        path = tmp_path / "ops.yaml"
        path.write_text(
            "name: operators\n"
            "path:\n"
            "  sys/mounts/*:\n"
            "    capabilities: [read, list, sudo]\n"
        )

        policy = load_policy_file(path)

        assert policy.name == "operators"
        assert policy.paths[0].is_prefix
        assert policy.paths[0].capabilities.has_capability("sudo")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_policy_file(tmp_path / "nope.json")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(PolicyParseError):
            load_policy_file(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text('{"path": {')

        with pytest.raises(PolicyParseError):
            load_policy_file(path)
