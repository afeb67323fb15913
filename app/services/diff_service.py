"""근무 스냅샷 비교(diff) 및 병합 미리보기 서비스.

Shift snapshot diff and merge-preview service.
Pure functions over snapshot dictionaries (see ``RosterHistory`` for the
shape); nothing here touches the database.

Shifts are matched across two snapshots by their *slot key*
``(date, start_time, position)``, not by row id, so a slot whose assignee
changed is reported as a reassignment rather than a remove plus an add.
"""

from collections import defaultdict
from typing import Any

SlotKey = tuple[str, str, str]


def slot_key(shift: dict[str, Any]) -> SlotKey:
    """슬롯 키 — (날짜, 시작 시각, 포지션) (Slot identity of a snapshot shift)."""
    return (str(shift.get("date")), str(shift.get("start_time")), shift.get("position") or "")


def _slot_info(shift: dict[str, Any]) -> dict[str, Any]:
    return {
        "date": shift.get("date"),
        "start_time": shift.get("start_time"),
        "position": shift.get("position"),
    }


def _pair_slots(
    before: list[dict[str, Any]],
    after: list[dict[str, Any]],
) -> tuple[list[tuple[dict[str, Any], dict[str, Any]]], list[dict[str, Any]], list[dict[str, Any]]]:
    """두 스냅샷의 슬롯을 짝지웁니다.

    Pair shifts of two snapshots by slot key. A key may hold several shifts
    (two bartenders starting at 09:00); within a key, shifts with the same
    assignee are paired first, the rest in order of appearance.

    Returns:
        (pairs, only_before, only_after)
    """
    before_by_key: dict[SlotKey, list[dict[str, Any]]] = defaultdict(list)
    after_by_key: dict[SlotKey, list[dict[str, Any]]] = defaultdict(list)
    for shift in before:
        before_by_key[slot_key(shift)].append(shift)
    for shift in after:
        after_by_key[slot_key(shift)].append(shift)

    pairs: list[tuple[dict[str, Any], dict[str, Any]]] = []
    only_before: list[dict[str, Any]] = []
    only_after: list[dict[str, Any]] = []

    for key in list(before_by_key) + [k for k in after_by_key if k not in before_by_key]:
        old: list[dict[str, Any]] = list(before_by_key.get(key, []))
        new: list[dict[str, Any]] = list(after_by_key.get(key, []))

        # 같은 직원끼리 먼저 매칭 — Match identical assignees first
        for old_shift in list(old):
            match = next((s for s in new if s.get("user_id") == old_shift.get("user_id")), None)
            if match is not None:
                pairs.append((old_shift, match))
                old.remove(old_shift)
                new.remove(match)

        while old and new:
            pairs.append((old.pop(0), new.pop(0)))
        only_before.extend(old)
        only_after.extend(new)

    return pairs, only_before, only_after


def describe_field_changes(before: dict[str, Any], after: dict[str, Any]) -> list[str]:
    """슬롯이 같은 두 근무의 필드 변경 설명 (assignee 제외).

    Human-readable descriptions of end time, break and notes changes between
    two shifts of the same slot. Assignee changes are reported separately.
    """
    changes: list[str] = []
    if before.get("end_time") != after.get("end_time"):
        changes.append(f"End time: {before.get('end_time')} → {after.get('end_time')}")
    if (before.get("break_minutes") or 0) != (after.get("break_minutes") or 0):
        changes.append(f"Break: {before.get('break_minutes') or 0}min → {after.get('break_minutes') or 0}min")
    if (before.get("notes") or None) != (after.get("notes") or None):
        changes.append("Notes updated")
    return changes


class DiffService:
    """스냅샷 비교 서비스 (Snapshot diff and merge preview)."""

    def diff(self, before: list[dict[str, Any]], after: list[dict[str, Any]]) -> dict[str, Any]:
        """두 스냅샷 간 변경 사항을 계산합니다.

        Compute the structural difference between two shift snapshots.

        Args:
            before: 이전 스냅샷 (Earlier shift snapshot)
            after: 이후 스냅샷 (Later shift snapshot)

        Returns:
            dict: added / removed / modified / reassigned 목록과 summary
                (Lists of changes plus a summary whose ``affected_users`` is the
                set of every staff id touched by any change, old and new assignees)
        """
        pairs, only_before, only_after = _pair_slots(before or [], after or [])

        added: list[dict[str, Any]] = list(only_after)
        removed: list[dict[str, Any]] = list(only_before)
        modified: list[dict[str, Any]] = []
        reassigned: list[dict[str, Any]] = []
        affected: set[str] = set()

        for shift in added:
            if shift.get("user_id"):
                affected.add(str(shift["user_id"]))
        for shift in removed:
            if shift.get("user_id"):
                affected.add(str(shift["user_id"]))

        for old, new in pairs:
            if old.get("user_id") != new.get("user_id"):
                reassigned.append({
                    **_slot_info(new),
                    "before": old,
                    "after": new,
                    "previous_user_id": old.get("user_id"),
                    "previous_user": old.get("user_name"),
                    "new_user_id": new.get("user_id"),
                    "new_user": new.get("user_name"),
                })
                for uid in (old.get("user_id"), new.get("user_id")):
                    if uid:
                        affected.add(str(uid))

            field_changes: list[str] = describe_field_changes(old, new)
            if field_changes:
                modified.append({
                    **_slot_info(new),
                    "before": old,
                    "after": new,
                    "changes": field_changes,
                })
                for uid in (old.get("user_id"), new.get("user_id")):
                    if uid:
                        affected.add(str(uid))

        return {
            "added": added,
            "removed": removed,
            "modified": modified,
            "reassigned": reassigned,
            "summary": {
                "total_changes": len(added) + len(removed) + len(modified) + len(reassigned),
                "added": len(added),
                "removed": len(removed),
                "modified": len(modified),
                "reassigned": len(reassigned),
                "affected_users": sorted(affected),
            },
        }

    def per_user_changes(self, diff: dict[str, Any]) -> dict[str, dict[str, int]]:
        """사용자별 변경 집계 — 게시 알림 메시지 구성용.

        Count, per staff id, what a diff means for that person: new shifts,
        removed shifts, shifts assigned to them, shifts reassigned away and
        modified shifts.
        """
        counts: dict[str, dict[str, int]] = defaultdict(
            lambda: {"added": 0, "removed": 0, "assigned": 0, "reassigned_away": 0, "modified": 0}
        )
        for shift in diff["added"]:
            if shift.get("user_id"):
                counts[str(shift["user_id"])]["added"] += 1
        for shift in diff["removed"]:
            if shift.get("user_id"):
                counts[str(shift["user_id"])]["removed"] += 1
        for entry in diff["reassigned"]:
            if entry.get("new_user_id"):
                counts[str(entry["new_user_id"])]["assigned"] += 1
            if entry.get("previous_user_id"):
                counts[str(entry["previous_user_id"])]["reassigned_away"] += 1
        for entry in diff["modified"]:
            uid = entry["after"].get("user_id")
            if uid:
                counts[str(uid)]["modified"] += 1
        return dict(counts)

    def preview_merge(
        self,
        existing: list[dict[str, Any]],
        incoming: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """추출된 근무를 기존 DRAFT에 병합할 때의 미리보기.

        Preview applying an incoming (extracted) shift set on top of an
        existing draft. Matched slots whose assignee or fields differ are
        listed in ``to_update``; matched slots where both sides name a
        different staff member are also listed in ``conflicts`` because
        applying them would overwrite an existing assignment.
        """
        pairs, only_existing, only_incoming = _pair_slots(existing or [], incoming or [])

        to_update: list[dict[str, Any]] = []
        unchanged: list[dict[str, Any]] = []
        conflicts: list[dict[str, Any]] = []

        for current, new in pairs:
            changes: list[str] = describe_field_changes(current, new)
            if current.get("user_id") != new.get("user_id"):
                changes.append(
                    f"Staff: {current.get('user_name') or 'Unassigned'} → {new.get('user_name') or 'Unassigned'}"
                )
                if current.get("user_id") and new.get("user_id"):
                    conflicts.append({
                        **_slot_info(current),
                        "existing": current,
                        "incoming": new,
                        "reason": "Slot is already assigned to a different staff member",
                    })
            if changes:
                to_update.append({"existing": current, "incoming": new, "changes": changes})
            else:
                unchanged.append(current)

        return {
            "to_add": list(only_incoming),
            "to_remove": list(only_existing),
            "to_update": to_update,
            "unchanged": unchanged,
            "conflicts": conflicts,
            "summary": {
                "add_count": len(only_incoming),
                "remove_count": len(only_existing),
                "update_count": len(to_update),
                "unchanged_count": len(unchanged),
                "conflict_count": len(conflicts),
            },
        }


# 싱글턴 인스턴스 — Singleton instance
diff_service: DiffService = DiffService()
