"""Tests for BlueprintBuilder."""

from __future__ import annotations

import pytest
import yaml

from awsnuke.config.loader import NukeConfig, merge_documents, parse_document
from awsnuke.nuke.blueprint import BlueprintBuilder
from awsnuke.nuke.scanner import Scanner
from awsnuke.nuke.safety import SafetyChecker
from tests.fixtures.nuke import FakeLister, create_account, create_registry, create_resource

MAIN_CONFIG = {
    "regions": ["global", "us-east-1"],
    "account-blocklist": ["999999999999"],
    "accounts": {"123456789012": {"filters": {"Bucket": ["keep-me"]}}},
}


@pytest.fixture
def registry():
    buckets = FakeLister(
        [
            create_resource("keep-me", "Bucket", region="global", Id="keep-me"),
            create_resource("logs", "Bucket", region="global", label="team-logs", Id="logs"),
            create_resource("data: \"raw\"", "Bucket", region="global", Id="data: \"raw\""),
        ],
        resource_type="Bucket",
        is_global_service=True,
    )
    instances = FakeLister(
        [create_resource("i-1", "Instance", label="web-1", Id="i-1")],
        resource_type="Instance",
    )
    instances.id_property = None
    return create_registry(buckets, instances)


def build(registry, config_data: dict = MAIN_CONFIG, **kwargs) -> str:
    builder = BlueprintBuilder(create_account(), NukeConfig.from_dict(config_data), registry=registry)
    return builder.build(**kwargs)


class TestBlueprintBuilder:
    """Test suite for BlueprintBuilder."""

    def test_output_is_a_filter_document(self, registry) -> None:
        document = yaml.safe_load(build(registry))

        filters = document["accounts"]["123456789012"]["filters"]
        assert filters["Bucket"] == [
            {"property": "Id", "value": 'data: "raw"'},
            {"property": "Id", "value": "logs"},
        ]
        # No id property: plain filter on the resource name
        assert filters["Instance"] == ["web-1"]

    def test_include_name_adds_label_filters(self, registry) -> None:
        filters = yaml.safe_load(build(registry, include_name=True))["accounts"]["123456789012"]["filters"]

        assert {"property": "Id", "value": "logs"} in filters["Bucket"]
        assert "team-logs" in filters["Bucket"]
        assert filters["Instance"] == ["web-1"]

    def test_include_filtered_adds_comments(self, registry) -> None:
        text = build(registry, include_filtered=True)

        assert "# \"keep-me\": filtered by config (Bucket[0]: name exact 'keep-me')" in text
        assert "keep-me" not in str(yaml.safe_load(text))

    def test_multiline_filter_reason_stays_one_comment(self, registry) -> None:
        config = {
            **MAIN_CONFIG,
            "accounts": {"123456789012": {"filters": {"Bucket": [{"property": "Id", "value": "logs\nmalformed: [x"}]}}},
        }
        registry.get("Bucket").resources["logs"].properties["Id"] = "logs\nmalformed: [x"

        text = build(registry, config, include_filtered=True)

        assert "# \"team-logs\": filtered by config (Bucket[0]: Id exact 'logs malformed: [x')" in text
        document = yaml.safe_load(text)
        assert "malformed" not in document
        assert {"property": "Id", "value": "logs"} not in document["accounts"]["123456789012"]["filters"]["Bucket"]

    def test_filtered_resources_are_left_out_by_default(self, registry) -> None:
        assert "keep-me" not in build(registry)

    def test_only_filtered_type_renders_empty_list(self) -> None:
        buckets = FakeLister([create_resource("keep-me", "Bucket", region="global", Id="keep-me")], resource_type="Bucket", is_global_service=True)

        document = yaml.safe_load(build(create_registry(buckets), include_filtered=True))

        assert document["accounts"]["123456789012"]["filters"] == {"Bucket": []}

    def test_round_trip_filters_every_former_candidate(self, registry) -> None:
        blueprint = parse_document(build(registry), "blueprint.yaml")
        merged = NukeConfig.from_dict(merge_documents([MAIN_CONFIG, blueprint]))

        checker = SafetyChecker(filter_groups=merged.filter_groups("123456789012"), regions=merged.regions)
        results = list(Scanner(registry, checker, merged.regions).scan())

        assert len(results) == 4
        assert all(decision.filtered for _, decision in results)

    def test_scan_errors_are_reported_as_comments(self, registry) -> None:
        registry.get("Instance").list_error = RuntimeError("AccessDenied")

        text = build(registry)

        assert "# Listing failed: Instance in us-east-1: AccessDenied" in text
        assert "Instance" not in yaml.safe_load(text)["accounts"]["123456789012"]["filters"]

    def test_never_removes(self, registry) -> None:
        build(registry)

        assert registry.get("Bucket").remove_calls == []
