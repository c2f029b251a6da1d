"""Tests for SafetyChecker class.

Test coverage for filter evaluation and the order of protection rules.
"""

from __future__ import annotations

from awsnuke.filters.filter import build_filter_group
from awsnuke.nuke.safety import NOT_TARGETED, REGION_PROTECTED, SafetyChecker
from tests.fixtures.nuke import create_resource


class TestSafetyChecker:
    """Test suite for SafetyChecker class."""

    def test_no_rules_means_candidate(self) -> None:
        checker = SafetyChecker()

        decision = checker.evaluate(create_resource("b-1", "S3Bucket"))

        assert decision.filtered is False
        assert decision.reason is None

    def test_not_targeted(self) -> None:
        checker = SafetyChecker(targets=["EC2Instance"])

        decision = checker.evaluate(create_resource("b-1", "S3Bucket"))

        assert decision.filtered is True
        assert decision.reason == NOT_TARGETED
        assert decision.rule == "targets"

    def test_unconfigured_region_is_protected(self) -> None:
        checker = SafetyChecker(regions=["us-east-1"])

        decision = checker.evaluate(create_resource("i-1", "EC2Instance", region="eu-west-1"))

        assert decision.filtered is True
        assert decision.reason.startswith(REGION_PROTECTED)

    def test_global_region_is_always_allowed(self) -> None:
        checker = SafetyChecker(regions=["us-east-1"])

        assert checker.evaluate(create_resource("r-1", "IAMRole", region="global")).filtered is False

    def test_targeting_wins_over_filters(self) -> None:
        groups = {"S3Bucket": build_filter_group("S3Bucket", ["b-1"])}
        checker = SafetyChecker(filter_groups=groups, targets=["EC2Instance"])

        assert checker.evaluate(create_resource("b-1", "S3Bucket")).rule == "targets"

    def test_filter_reason_names_the_rule(self) -> None:
        groups = {"S3Bucket": build_filter_group("S3Bucket", [{"property": "Name", "type": "glob", "value": "prod-*"}])}
        checker = SafetyChecker(filter_groups=groups)

        decision = checker.evaluate(create_resource("prod-data", "S3Bucket", Name="prod-data"))

        assert decision.filtered is True
        assert decision.rule == "S3Bucket[0]"
        assert decision.reason == "filtered by config (S3Bucket[0]: Name glob 'prod-*')"

    def test_filters_only_apply_to_their_type(self) -> None:
        groups = {"S3Bucket": build_filter_group("S3Bucket", ["shared-name"])}
        checker = SafetyChecker(filter_groups=groups)

        assert checker.evaluate(create_resource("shared-name", "LambdaFunction")).filtered is False
