import json
import os

import pytest

from resolutions.events import load_events, parse_events
from resolutions.orchestrator import DedupPass, Resolutions, replay, run_once

HERE = os.path.dirname(os.path.abspath(__file__))
EVENTS = os.path.join(HERE, "fixtures", "app_a_events.json")

AB1 = "/app/node_modules/lib-ab/index.js"
AB2 = "/app/node_modules/lib-c/node_modules/lib-ab/index.js"
B1 = "/app/node_modules/lib-b/index.js"
B2 = "/app/node_modules/lib-c/node_modules/lib-ab/node_modules/lib-b/index.js"


def _rows_by_id(result):
    return {row["id"]: row for row in result.rows}


def test_single_package_pulls_its_subtree_along():
    result = replay(load_events(EVENTS), ["lib-ab"])
    assert result.resolution.target_of(AB2) == AB1
    assert result.resolution.target_of(B2) == B1

    rows = _rows_by_id(result)
    assert rows[AB2]["dedupe"] == AB1
    assert rows[AB2]["dedupe_index"] == 1
    assert rows[AB2]["source"] == "module.exports = require(1);"
    assert rows[AB2]["index_deps"] == {"lib-b": 2, "dup": 1}
    assert rows[B2]["source"] == "module.exports = require(0);"
    # the host's own dedupe pointed the canonical lib-b at its copy
    assert "dedupe" not in rows[B1]
    assert result.annotations[B1].cleared_default_dedupe is True


def test_wildcard_matches_named_selection():
    events = load_events(EVENTS)
    named = replay(events, ["lib-ab", "lib-b"])
    everything = replay(events, "*")
    assert everything.resolution == named.resolution
    assert everything.rows == named.rows


def test_subset_name_leaves_bundle_as_is():
    events = load_events(EVENTS)
    result = replay(events, ["lib-a"])
    assert len(result.resolution) == 0
    rows = _rows_by_id(result)
    # only the host's default dedupe remains, as a guarded factory call
    assert rows[B1]["source"] == "arguments[4][2][0].apply(exports,arguments)"
    assert "dedupe" not in rows[AB2]


def test_no_options_is_vanilla():
    result = replay(load_events(EVENTS), None, rewrite=False)
    assert len(result.resolution) == 0
    assert _rows_by_id(result)[B1]["dedupe_index"] == 2


def test_replaying_twice_is_identical():
    events = load_events(EVENTS)
    assert replay(events, "*").resolution == replay(events, "*").resolution


def test_pass_rejects_out_of_phase_events():
    dp = DedupPass(["lib-a"])
    with pytest.raises(RuntimeError):
        dp.on_sorted({"id": "/a.js", "index": 0})
    dp.end_dependencies()
    with pytest.raises(RuntimeError):
        dp.on_deps("/a.js", {})
    with pytest.raises(RuntimeError):
        dp.end_dependencies()


def test_each_pass_starts_clean():
    plugin = Resolutions(["p"])
    first = plugin.new_pass()
    first.on_package("p")
    first.on_file("/deep/p.js")
    first.on_package("p")
    first.on_file("/p.js")
    assert first.end_dependencies().target_of("/deep/p.js") == "/p.js"

    second = plugin.new_pass()
    assert second is not first
    second.on_package("p")
    second.on_file("/p.js")
    assert len(second.end_dependencies()) == 0


def test_pass_with_no_rows_still_resolves():
    result = replay(parse_events([
        {"type": "package", "name": "p"},
        {"type": "file", "id": "/deep/p.js"},
        {"type": "package", "name": "p"},
        {"type": "file", "id": "/p.js"},
    ]), "*")
    assert result.resolution.is_canonical("/p.js")
    assert result.rows == []


def test_invalid_event_record():
    with pytest.raises(ValueError):
        parse_events([{"type": "sort", "id": "/a.js"}])
    with pytest.raises(ValueError):
        parse_events([{"type": "bogus"}])


def test_json_lines_events(tmp_path):
    path = tmp_path / "events.jsonl"
    path.write_text(
        '{"type": "package", "name": "p"}\n\n{"type": "file", "id": "/p.js"}\n',
        encoding="utf-8",
    )
    events = load_events(str(path))
    assert [e.type for e in events] == ["package", "file"]


def test_run_once_writes_report(tmp_path):
    cfg = tmp_path / "config.yaml"
    out = tmp_path / "out" / "report.json"
    cfg.write_text("packages:\n  - lib-ab\nrewrite:\n  enabled: false\n", encoding="utf-8")
    assert run_once(str(cfg), EVENTS, overrides={"out": str(out)}) is None

    report = json.loads(out.read_text(encoding="utf-8"))
    assert report["resolution"][AB2] == {"role": "duplicate", "target": AB1}
    assert report["annotations"][AB2]["reexport_eligible"] is True
    assert all("source" not in row for row in report["rows"])


def test_run_once_overrides_select_all():
    text = run_once(None, EVENTS, overrides={"all_packages": True})
    report = json.loads(text)
    assert report["resolution"][B2] == {"role": "duplicate", "target": B1}


GROUPING = [
    ("package", "p"), ("file", "/x/long/p.js"),
    ("package", "p"), ("file", "/p.js"),
]
ROWS = [
    ("deps", "/x/long/p.js", {"./a": "/x/long/a.js"}),
    ("deps", "/p.js", {"./a": "/a.js"}),
    ("deps", "/x/long/a.js", {"./b": "/x/long/b.js"}),
    ("deps", "/a.js", {"./b": "/b.js"}),
    ("deps", "/x/long/b.js", {}),
    ("deps", "/b.js", {}),
]


def _resolve_in_order(events):
    dp = DedupPass(["p"])
    for ev in events:
        if ev[0] == "package":
            dp.on_package(ev[1])
        elif ev[0] == "file":
            dp.on_file(ev[1])
        else:
            dp.on_deps(ev[1], ev[2])
    return dp.end_dependencies()


def test_grouping_and_rows_interleave_in_any_order():
    expected = _resolve_in_order(GROUPING + ROWS)
    assert expected.target_of("/x/long/b.js") == "/b.js"

    rows_first = _resolve_in_order(ROWS + GROUPING)
    children_first = _resolve_in_order(GROUPING + list(reversed(ROWS)))
    mixed = _resolve_in_order(GROUPING[:2] + ROWS[4:] + GROUPING[2:] + ROWS[:4])
    assert rows_first == expected
    assert children_first == expected
    assert mixed == expected
