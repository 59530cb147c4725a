# tests/test_store.py
from __future__ import annotations

import json

import pytest

from labelscout.exceptions import InputError
from labelscout.models import EvidenceFlags, KeptEntity, Target
from labelscout.output import store as store_mod
from labelscout.output.store import (
    atomic_write_json,
    load_json,
    merge_entity_rows,
    normalize_rows,
    previous_by_target,
)

LABEL_A = Target(id="label-a", name="Label A", source_url="https://a.example/")
LABEL_B = Target(id="label-b", name="Label B", source_url="https://b.example/")


def _kept(name: str, score: float = 8.0) -> KeptEntity:
    return KeptEntity(
        name=name,
        score=score,
        pages_seen=1,
        urls=("https://a.example/members",),
        flags=EvidenceFlags(external_link=True),
        reasons=("base", "ext_link"),
        snippets=(name,),
    )


def _assert_invariant(rows):
    for row in rows:
        assert row["associatedLabels"] == sorted(row["evidenceByLabel"])


# ---- file IO ---------------------------------------------------------------------


class TestFileIO:
    def test_missing_file_gives_fallback(self, tmp_path):
        assert load_json(tmp_path / "nope.json", []) == []

    def test_corrupt_file_is_input_error(self, tmp_path):
        path = tmp_path / "rows.json"
        path.write_text("[{broken", encoding="utf-8")
        with pytest.raises(InputError):
            load_json(path, [])

    def test_atomic_write_round_trip(self, tmp_path):
        path = tmp_path / "out" / "rows.json"
        atomic_write_json(path, [{"entityName": "Acmé"}])
        assert json.loads(path.read_text(encoding="utf-8")) == [{"entityName": "Acmé"}]
        assert [p.name for p in path.parent.iterdir()] == ["rows.json"]

    def test_failed_replace_leaves_previous_file_intact(self, tmp_path, monkeypatch):
        path = tmp_path / "rows.json"
        atomic_write_json(path, [{"entityName": "Acme Corp"}])
        before = path.read_text(encoding="utf-8")

        def crash(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(store_mod.os, "replace", crash)
        with pytest.raises(OSError):
            atomic_write_json(path, [{"entityName": "Half Written"}])

        assert path.read_text(encoding="utf-8") == before
        assert json.loads(before) == [{"entityName": "Acme Corp"}]
        # no temp files left behind
        assert [p.name for p in tmp_path.iterdir()] == ["rows.json"]


# ---- merging -----------------------------------------------------------------------


class TestMerge:
    def test_new_entity_row(self):
        rows = merge_entity_rows([], [_kept("Acme Corp")], LABEL_A)
        assert len(rows) == 1
        row = rows[0]
        assert row["entityName"] == "Acme Corp"
        assert row["associatedLabels"] == ["label-a"]
        (snap,) = row["evidenceByLabel"]["label-a"]
        assert snap["targetId"] == "label-a"
        assert snap["targetName"] == "Label A"
        assert snap["flags"]["externalLink"] is True

    def test_existing_entity_gains_label(self):
        rows = merge_entity_rows([], [_kept("Acme Corp")], LABEL_A)
        rows = merge_entity_rows(rows, [_kept("ACME corp")], LABEL_B)
        assert len(rows) == 1
        assert rows[0]["entityName"] == "Acme Corp"
        assert rows[0]["associatedLabels"] == ["label-a", "label-b"]
        _assert_invariant(rows)

    def test_inputs_not_mutated(self):
        existing = merge_entity_rows([], [_kept("Acme Corp")], LABEL_A)
        snapshot = json.dumps(existing, sort_keys=True)
        merge_entity_rows(existing, [_kept("Acme Corp", 9)], LABEL_A)
        assert json.dumps(existing, sort_keys=True) == snapshot

    def test_evidence_capped_to_newest(self):
        rows: list = []
        for score in range(1, 9):
            rows = merge_entity_rows(rows, [_kept("Acme Corp", score)], LABEL_A, evidence_cap=3)
        snaps = rows[0]["evidenceByLabel"]["label-a"]
        assert [s["score"] for s in snaps] == [6, 7, 8]

    def test_identical_snapshot_not_repeated(self):
        rows = merge_entity_rows([], [_kept("Acme Corp")], LABEL_A)
        again = merge_entity_rows(rows, [_kept("Acme Corp")], LABEL_A)
        assert again == rows

    def test_sorted_by_normalized_name(self):
        rows = merge_entity_rows([], [_kept("bravo Co"), _kept("Alpha Inc"), _kept("Charlie Ltd")], LABEL_A)
        assert [r["entityName"] for r in rows] == ["Alpha Inc", "bravo Co", "Charlie Ltd"]


# ---- normalization -----------------------------------------------------------------


class TestNormalize:
    def test_repairs_invariant_and_merges_duplicates(self):
        rows = normalize_rows(
            [
                {"entityName": "Acme Corp", "associatedLabels": ["label-b"], "evidenceByLabel": {"label-a": []}},
                {"entityName": " acme  CORP ", "associatedLabels": ["label-c"]},
                {"entityName": "123"},
                {"entityName": None},
                "not a row",
            ]
        )
        assert len(rows) == 1
        assert rows[0]["entityName"] == "Acme Corp"
        assert rows[0]["associatedLabels"] == ["label-a", "label-b", "label-c"]
        _assert_invariant(rows)

    def test_previous_by_target(self):
        rows = merge_entity_rows([], [_kept("Acme Corp"), _kept("Bravo Co")], LABEL_A)
        rows = merge_entity_rows(rows, [_kept("Bravo Co")], LABEL_B)
        assert previous_by_target(rows) == {"label-a": ["Acme Corp", "Bravo Co"], "label-b": ["Bravo Co"]}
