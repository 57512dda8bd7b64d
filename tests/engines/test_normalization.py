"""
Tests for workflow config normalization.

Covers:
- snake_case and camelCase input
- Defaults: node type, approval mode, timeout, approver role, organization
- Structural errors are collected, not raised one at a time
- Edge cleanup and endpoint validation
"""

from decimal import Decimal
from itertools import count
from uuid import uuid4

import pytest

from approval_engines.normalization import (
    DEFAULT_WORKFLOW_NAME,
    normalize_config_input,
    normalize_edges,
)
from approval_kernel.domain.workflow_graph import (
    ApprovalMode,
    EdgePort,
    NodeType,
    RoleApprover,
    UserApprover,
)
from approval_kernel.exceptions import WorkflowConfigValidationError


def normalize(raw, **kwargs):
    ids = count(1)
    defaults = dict(
        workflow_key="purchase_default",
        default_approver_role="admin",
        organization_types=("school", "company"),
        id_factory=lambda: f"gen-{next(ids)}",
    )
    defaults.update(kwargs)
    return normalize_config_input(raw, **defaults)


class TestNodeDefaults:

    def test_minimal_node_gets_defaults(self):
        config = normalize({"nodes": [{"id": "a"}]})
        node = config.nodes[0]

        assert node.node_type is NodeType.USER_ACTIVITY
        assert node.approval_mode is ApprovalMode.SERIAL
        assert node.timeout_hours == 24
        assert node.approver == RoleApprover("admin")
        assert node.condition.organization_type == "all"
        assert node.required_comment is False
        assert config.name == DEFAULT_WORKFLOW_NAME

    def test_missing_id_is_generated(self):
        config = normalize({"nodes": [{"name": "x"}, {"name": "y"}]})
        assert [n.id for n in config.nodes] == ["gen-1", "gen-2"]

    def test_unknown_node_type_becomes_user_activity(self):
        assert normalize({"nodes": [{"id": "a", "node_type": "robot"}]}).nodes[0].node_type is NodeType.USER_ACTIVITY

    def test_any_mode_kept_other_modes_serial(self):
        config = normalize({"nodes": [
            {"id": "a", "approval_mode": "any"},
            {"id": "b", "approval_mode": "parallel"},
        ]})
        assert config.nodes[0].approval_mode is ApprovalMode.ANY
        assert config.nodes[1].approval_mode is ApprovalMode.SERIAL

    @pytest.mark.parametrize("raw, expected", [(0, 24), (-5, 1), ("12", 12), ("junk", 24), (None, 24)])
    def test_timeout_hours_clamped(self, raw, expected):
        assert normalize({"nodes": [{"id": "a", "timeout_hours": raw}]}).nodes[0].timeout_hours == expected

    def test_unknown_organization_becomes_all(self):
        node = normalize({"nodes": [{"id": "a", "condition": {"organization_type": "hospital"}}]}).nodes[0]
        assert node.condition.organization_type == "all"

    def test_non_finite_position_dropped(self):
        nodes = normalize({"nodes": [
            {"id": "a", "position": {"x": 1, "y": 2}},
            {"id": "b", "position": {"x": float("inf"), "y": 2}},
        ]}).nodes
        assert nodes[0].position is not None and nodes[0].position.x == 1.0
        assert nodes[1].position is None

    def test_explicit_disabled_flag_kept(self):
        assert normalize({"enabled": False, "nodes": []}).enabled is False

    def test_omitted_enabled_flag_saves_disabled(self):
        config = normalize({"nodes": [{"id": "a", "approver_role": "finance"}]})
        assert config.enabled is False
        assert [n.id for n in config.nodes] == ["a"]

    @pytest.mark.parametrize("raw, expected", [(True, True), (1, True), (None, False), (0, False)])
    def test_enabled_flag_truthiness(self, raw, expected):
        assert normalize({"enabled": raw, "nodes": []}).enabled is expected


class TestCamelCase:

    def test_camel_case_keys_accepted(self):
        user_id = uuid4()
        config = normalize({
            "name": "Editor output",
            "nodes": [
                {
                    "id": "a",
                    "nodeType": "user_activity",
                    "approverType": "user",
                    "approverUserId": str(user_id),
                    "approvalMode": "any",
                    "timeoutHours": 48,
                    "requiredComment": True,
                    "condition": {"minAmount": "100", "maxAmount": 900, "organizationType": "school"},
                },
                {"id": "b", "approverType": "role", "approverRole": "finance"},
            ],
            "edges": [{"sourceId": "a", "targetId": "b", "sourcePort": "right", "targetPort": "left"}],
        })

        a, b = config.nodes
        assert a.approver == UserApprover(user_id)
        assert a.approval_mode is ApprovalMode.ANY
        assert a.timeout_hours == 48
        assert a.required_comment is True
        assert a.condition.min_amount == Decimal("100")
        assert a.condition.max_amount == Decimal("900")
        assert a.condition.organization_type == "school"
        assert b.approver == RoleApprover("finance")
        assert config.edges[0].source_port is EdgePort.RIGHT
        assert config.edges[0].target_port is EdgePort.LEFT


class TestValidationErrors:

    def test_errors_are_collected(self):
        with pytest.raises(WorkflowConfigValidationError) as exc_info:
            normalize({
                "nodes": [
                    {"id": "a", "condition": {"min_amount": "10", "max_amount": "5"}},
                    {"id": "a"},
                    {"id": "c", "approver_type": "user", "approver_user_id": "not-a-uuid"},
                    {"id": "d", "condition": {"min_amount": "abc"}},
                ],
                "edges": [{"source_id": "a", "target_id": "ghost"}],
            })

        errors = exc_info.value.errors
        assert len(errors) == 5
        assert any("exceeds max_amount" in e for e in errors)
        assert any("duplicate node id a" in e for e in errors)
        assert any("valid user id" in e for e in errors)
        assert any("must be a number" in e for e in errors)
        assert any("unknown node ghost" in e for e in errors)
        assert exc_info.value.code == "INVALID_WORKFLOW_CONFIG"

    @pytest.mark.parametrize("bad", ["-1", "NaN", "Infinity", True])
    def test_rejects_negative_and_non_finite_amounts(self, bad):
        with pytest.raises(WorkflowConfigValidationError):
            normalize({"nodes": [{"id": "a", "condition": {"min_amount": bad}}]})

    def test_nodes_must_be_list(self):
        with pytest.raises(WorkflowConfigValidationError):
            normalize({"nodes": {"id": "a"}})


class TestEdges:

    def test_edges_with_empty_endpoints_dropped(self):
        edges = normalize_edges([
            {"source_id": "a", "target_id": ""},
            {"source_id": "", "target_id": "b"},
            "not a dict",
            {"id": "keep", "source_id": "a", "target_id": "b", "source_port": "diagonal"},
        ])
        assert len(edges) == 1
        assert edges[0].id == "keep"
        assert edges[0].source_port is EdgePort.BOTTOM

    def test_non_list_edges_ignored(self):
        assert normalize_edges(None) == ()
        assert normalize_edges({"a": 1}) == ()
