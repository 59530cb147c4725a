# labelscout/output/store.py
"""
Persisted entity rows and the JSON file IO around them.

Row shape (one per entity, identity = normalized entityName):

    {
      "entityName": "Acme Corp",
      "associatedLabels": ["example-label"],
      "evidenceByLabel": {"example-label": [ {score, pagesSeen, urls, ...} ]}
    }

associatedLabels is always exactly the key set of evidenceByLabel; rows are
repaired on load and the invariant is re-established on every merge.

Every write goes to a temporary file in the destination directory and is then
renamed over the destination, so readers never see a half-written file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from ..exceptions import InputError
from ..extract.plausibility import is_plausible_row
from ..models import KeptEntity, Target
from ..utils import clean_text, entity_key

log = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------
# File IO
# --------------------------------------------------------------------------------------


def load_json(path: Path, fallback: Any) -> Any:
    """
    Read JSON from path.

    A missing file yields fallback. A file that exists but cannot be read or
    parsed raises InputError: silently treating it as empty would let the next
    write clobber good data.
    """
    if not path.exists():
        return fallback
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as err:
        raise InputError(f"cannot load {path}: {err}") from err


def atomic_write_json(path: Path, data: Any) -> None:
    """Serialize data to a temp file beside path, fsync, then os.replace()."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp:
        tmp.write(payload)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_name = tmp.name
    try:
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    log.debug("wrote %s (%d bytes)", path, len(payload))


# --------------------------------------------------------------------------------------
# Row helpers
# --------------------------------------------------------------------------------------


def _normalize_row(row: Mapping[str, Any]) -> dict[str, Any] | None:
    name = clean_text(row.get("entityName") if isinstance(row.get("entityName"), str) else "")
    if not is_plausible_row(name):
        return None

    evidence: dict[str, list[Any]] = {}
    raw_ev = row.get("evidenceByLabel")
    if isinstance(raw_ev, Mapping):
        for label, snaps in raw_ev.items():
            evidence[str(label)] = list(snaps) if isinstance(snaps, list) else []
    for label in row.get("associatedLabels") or []:
        evidence.setdefault(str(label), [])

    return {
        "entityName": name,
        "associatedLabels": sorted(evidence),
        "evidenceByLabel": {k: evidence[k] for k in sorted(evidence)},
    }


def _merge_into(dst: dict[str, Any], src: Mapping[str, Any]) -> None:
    ev = dst["evidenceByLabel"]
    for label, snaps in src["evidenceByLabel"].items():
        ev.setdefault(label, []).extend(snaps)
    dst["evidenceByLabel"] = {k: ev[k] for k in sorted(ev)}
    dst["associatedLabels"] = sorted(ev)


def normalize_rows(rows: Iterable[Any]) -> list[dict[str, Any]]:
    """
    Repair rows loaded from disk.

    Implausible names are dropped, duplicate identities are folded together,
    and associatedLabels is rebuilt from evidenceByLabel.
    """
    by_key: dict[str, dict[str, Any]] = {}
    dropped = 0
    for row in rows:
        norm = _normalize_row(row) if isinstance(row, Mapping) else None
        if norm is None:
            dropped += 1
            continue
        key = entity_key(norm["entityName"])
        if key in by_key:
            _merge_into(by_key[key], norm)
        else:
            by_key[key] = norm
    if dropped:
        log.info("dropped %d implausible rows from previous output", dropped)
    return sorted(by_key.values(), key=lambda r: (entity_key(r["entityName"]), r["entityName"]))


def evidence_snapshot(entity: KeptEntity, target: Target) -> dict[str, Any]:
    snap = entity.evidence()
    snap["targetId"] = target.id
    snap["targetName"] = target.name
    return snap


def merge_entity_rows(
    existing: Iterable[Mapping[str, Any]],
    kept: Iterable[KeptEntity],
    target: Target,
    *,
    evidence_cap: int = 5,
) -> list[dict[str, Any]]:
    """
    Upsert kept entities for target into existing rows.

    New names create rows; known names gain target in associatedLabels and a
    new evidence snapshot under evidenceByLabel[target.id]. Each evidence list
    keeps only its newest evidence_cap snapshots, and a snapshot identical to
    the newest one already stored is not appended again.

    Returns a new list sorted by normalized name; inputs are not mutated.
    """
    by_key: dict[str, dict[str, Any]] = {}
    for row in existing:
        name = row["entityName"]
        by_key[entity_key(name)] = {
            "entityName": name,
            "associatedLabels": list(row["associatedLabels"]),
            "evidenceByLabel": {k: list(v) for k, v in row["evidenceByLabel"].items()},
        }

    for ent in kept:
        key = entity_key(ent.name)
        row = by_key.get(key)
        if row is None:
            row = {"entityName": clean_text(ent.name), "associatedLabels": [], "evidenceByLabel": {}}
            by_key[key] = row
        snaps = row["evidenceByLabel"].setdefault(target.id, [])
        snap = evidence_snapshot(ent, target)
        if not snaps or snaps[-1] != snap:
            snaps.append(snap)
        if evidence_cap > 0 and len(snaps) > evidence_cap:
            del snaps[: len(snaps) - evidence_cap]
        row["evidenceByLabel"] = {k: row["evidenceByLabel"][k] for k in sorted(row["evidenceByLabel"])}
        row["associatedLabels"] = sorted(row["evidenceByLabel"])

    return sorted(by_key.values(), key=lambda r: (entity_key(r["entityName"]), r["entityName"]))


def previous_by_target(rows: Iterable[Mapping[str, Any]]) -> dict[str, list[str]]:
    """target id -> entity names already associated with it."""
    out: dict[str, list[str]] = {}
    for row in rows:
        for label in row.get("associatedLabels") or []:
            out.setdefault(str(label), []).append(row["entityName"])
    return out


__all__ = [
    "atomic_write_json",
    "evidence_snapshot",
    "load_json",
    "merge_entity_rows",
    "normalize_rows",
    "previous_by_target",
]
