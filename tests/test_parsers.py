"""Tests for the info and performance payload parsers."""
from __future__ import annotations

import copy

import pytest

from conftest import CPU_PAYLOAD, INFO_PAYLOAD, MEMORY_PAYLOAD
from nsclient_bridge.catalog import CATALOG, CheckKind, enabled_checks
from nsclient_bridge.exceptions import ParseError
from nsclient_bridge.parsers import (
    IdentityParser,
    PerformanceParser,
    TYPE_NUMBER,
    TYPE_STRING,
    perf_value,
)


def by_path(leaves):
    return {leaf.path: leaf for leaf in leaves}


class TestIdentityParser:
    """Tests for the info parser."""

    def test_two_string_leaves(self, ctx):
        leaves = IdentityParser().parse(ctx, INFO_PAYLOAD)

        assert [(l.path, l.type, l.value) for l in leaves] == [
            ("Srv1.info.name", TYPE_STRING, "nsclient"),
            ("Srv1.info.version", TYPE_STRING, "0.5.2"),
        ]

    @pytest.mark.parametrize("body", [{}, {"name": "nsclient"}, {"name": 1, "version": "x"}, []])
    def test_malformed(self, ctx, body):
        with pytest.raises(ParseError):
            IdentityParser().parse(ctx, body)


class TestPerformanceParser:
    """Tests for the performance parser."""

    def test_cpu_payload(self, ctx):
        leaves = by_path(PerformanceParser().parse(ctx, CPU_PAYLOAD))

        assert set(leaves) == {
            "Srv1.check_cpu.result",
            "Srv1.check_cpu.message",
            "Srv1.check_cpu.perf.cpu.load",
        }
        result = leaves["Srv1.check_cpu.result"]
        assert result.value == 1
        assert result.type == TYPE_NUMBER
        assert result.common()["states"] == {0: "ok", 1: "warning", 2: "error", 3: "delayed"}
        assert leaves["Srv1.check_cpu.message"].value == "high load"
        assert leaves["Srv1.check_cpu.message"].type == TYPE_STRING
        load = leaves["Srv1.check_cpu.perf.cpu.load"]
        assert load.type == TYPE_NUMBER
        assert load.value == 85

    def test_memory_payload_types_and_names(self, ctx):
        leaves = by_path(PerformanceParser().parse(ctx, MEMORY_PAYLOAD))

        assert leaves["Srv1.check_memory.perf.committed.value"].value == 4.2
        assert leaves["Srv1.check_memory.perf.committed.maximum"].type == TYPE_NUMBER
        assert leaves["Srv1.check_memory.perf.committed.unit"].type == TYPE_STRING
        assert leaves["Srv1.check_memory.perf.physical_pct.unit"].value == "%"

    def test_only_first_line_used(self, ctx):
        body = copy.deepcopy(CPU_PAYLOAD)
        body["lines"].append({"message": "second", "perf": {"other": {"x": "1"}}})

        leaves = by_path(PerformanceParser().parse(ctx, body))

        assert leaves["Srv1.check_cpu.message"].value == "high load"
        assert not any(".other." in path for path in leaves)

    def test_missing_perf(self, ctx):
        body = {"command": "check_drivesize", "result": 0, "lines": [{"message": "ok"}]}
        leaves = PerformanceParser().parse(ctx, body)
        assert [l.path for l in leaves] == [
            "Srv1.check_drivesize.result",
            "Srv1.check_drivesize.message",
        ]

    def test_dynamic_segments_normalized(self, ctx):
        body = {
            "command": "check_drivesize",
            "result": 2,
            "lines": [{"message": "C: full", "perf": {"C:\\ used %": {"warn-level": "90"}}}],
        }
        leaves = PerformanceParser().parse(ctx, body)
        assert leaves[-1].path == "Srv1.check_drivesize.perf.C:__used_pct.warn_level"
        assert leaves[-1].name == "warn-level"

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda b: b.pop("command"),
            lambda b: b.pop("lines"),
            lambda b: b.update(lines=[]),
            lambda b: b.update(result=7),
            lambda b: b.update(result="ok"),
            lambda b: b["lines"][0].pop("message"),
            lambda b: b["lines"][0].update(perf={"cpu": "85"}),
        ],
    )
    def test_malformed(self, ctx, mutate):
        body = copy.deepcopy(CPU_PAYLOAD)
        mutate(body)
        with pytest.raises(ParseError) as excinfo:
            PerformanceParser().parse(ctx, body)
        assert excinfo.value.errors


class TestPerfValue:
    """Tests for numeric detection of performance values."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("85", 85), ("0", 0), ("12.50", 12.5), (3, 3), (4.25, 4.25)],
    )
    def test_numeric(self, raw, expected):
        assert perf_value(raw) == (TYPE_NUMBER, expected)

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("-1", "-1"),
            ("1e5", "1e5"),
            ("85%", "85%"),
            (".5", ".5"),
            ("85\n", "85\n"),
            ("\u0668\u0665", "\u0668\u0665"),
            ("", ""),
            (True, "true"),
            (None, ""),
        ],
    )
    def test_string(self, raw, expected):
        assert perf_value(raw) == (TYPE_STRING, expected)


class TestCatalog:
    """Tests for the query catalog."""

    def test_paths(self):
        assert CATALOG[CheckKind.INFO].path == "/api/v1/info"
        assert CATALOG[CheckKind.MEMORY].path == "/api/v1/queries/check_memory/commands/execute"
        assert isinstance(CATALOG[CheckKind.INFO].parser, IdentityParser)
        assert isinstance(CATALOG[CheckKind.DRIVESIZE].parser, PerformanceParser)

    def test_enabled_checks_order(self, all_checks_config):
        assert [k.value for k in enabled_checks(all_checks_config)] == [
            "check_cpu",
            "check_drivesize",
            "check_memory",
        ]
