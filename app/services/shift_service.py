"""로스터 근무 서비스 — 근무 CRUD 및 충돌 판정 저장.

Roster shift service (shift store).
Every mutation requires the owning roster to be DRAFT, runs the conflict
checker for assigned shifts, persists the verdict on the shift, and writes
one audit entry.
"""

import logging
from datetime import date, time, timedelta
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import AuditAction, ConflictType, Roster, RosterShift, RosterStatus
from app.repositories.roster_repository import roster_repository
from app.repositories.shift_repository import shift_repository
from app.repositories.user_repository import user_repository
from app.schemas.shift import ShiftCreate, ShiftUpdate
from app.services.audit_service import audit_service, shift_to_snapshot
from app.services.conflict_service import ConflictResult, conflict_service
from app.utils.exceptions import BadRequestError, NotFoundError, RosterNotEditableError
from app.utils.time_utils import format_time, intervals_overlap, parse_time

logger = logging.getLogger(__name__)


class ShiftService:
    """로스터 근무 서비스 (Shift store)."""

    async def get_draft_roster(self, db: AsyncSession, roster_id: UUID, action: str = "edit shifts") -> Roster:
        """수정 가능한(DRAFT) 로스터를 잠금과 함께 조회합니다.

        Load and lock a roster that must be DRAFT.

        Raises:
            NotFoundError: 로스터 없음 (Roster not found)
            RosterNotEditableError: DRAFT가 아님 (Roster is not DRAFT)
        """
        roster: Roster | None = await roster_repository.get_by_id(db, roster_id, for_update=True)
        if roster is None:
            raise NotFoundError("Roster not found")
        if roster.status != RosterStatus.DRAFT:
            raise RosterNotEditableError(roster.status, action)
        return roster

    @staticmethod
    def validate_times(roster: Roster, shift_date, start: time, end: time) -> None:
        if end <= start:
            raise BadRequestError("End time must be after start time")
        if not (roster.start_date <= shift_date <= roster.end_date):
            raise BadRequestError(
                f"Shift date {shift_date.isoformat()} is outside the roster period "
                f"({roster.start_date.isoformat()} to {roster.end_date.isoformat()})"
            )

    @staticmethod
    def _apply_verdict(shift: RosterShift, verdict: ConflictResult) -> None:
        shift.has_conflict = verdict.has_conflict
        shift.conflict_type = verdict.conflict_type.value if verdict.conflict_type else None

    async def refresh_conflict(self, db: AsyncSession, shift: RosterShift) -> ConflictResult:
        """근무의 충돌 판정을 다시 계산하여 저장합니다.

        Recompute and store the cached verdict of one shift. Unassigned
        shifts are cleared unconditionally.
        """
        if shift.user_id is None:
            verdict = ConflictResult.none()
        else:
            verdict = await conflict_service.check_conflict(
                db,
                shift.user_id,
                shift.date,
                shift.start_time,
                shift.end_time,
                roster_id=shift.roster_id,
                exclude_shift_id=shift.id,
            )
        self._apply_verdict(shift, verdict)
        return verdict

    async def build_response(self, db: AsyncSession, shift: RosterShift, names: dict[UUID, str] | None = None) -> dict:
        """근무 응답 딕셔너리를 구성합니다 (Shift response with the assignee name)."""
        if names is None:
            names = await user_repository.get_names(db, [shift.user_id])
        return {
            "id": str(shift.id),
            "roster_id": str(shift.roster_id),
            "user_id": str(shift.user_id) if shift.user_id else None,
            "user_name": names.get(shift.user_id) if shift.user_id else None,
            "date": shift.date,
            "start_time": format_time(shift.start_time),
            "end_time": format_time(shift.end_time),
            "break_minutes": shift.break_minutes or 0,
            "position": shift.position,
            "notes": shift.notes,
            "original_name": shift.original_name,
            "has_conflict": shift.has_conflict,
            "conflict_type": shift.conflict_type,
        }

    async def list_shifts(self, db: AsyncSession, roster_id: UUID) -> list[dict]:
        """로스터의 근무 목록 (Shifts of a roster with assignee names)."""
        shifts: Sequence[RosterShift] = await shift_repository.get_by_roster(db, roster_id)
        names: dict[UUID, str] = await user_repository.get_names(db, (s.user_id for s in shifts))
        return [await self.build_response(db, s, names) for s in shifts]

    async def add_shift(
        self,
        db: AsyncSession,
        roster_id: UUID,
        data: ShiftCreate,
        performed_by: UUID | None = None,
    ) -> RosterShift:
        """근무 1건을 추가합니다.

        Add one shift to a DRAFT roster, storing its conflict verdict.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            roster_id: 로스터 UUID (Roster UUID)
            data: 근무 생성 데이터 (Shift creation data)
            performed_by: 수행 사용자 (Acting user)

        Returns:
            RosterShift: 생성된 근무 (Created shift)

        Raises:
            NotFoundError: 로스터 없음 (Roster not found)
            RosterNotEditableError: DRAFT가 아님 (Roster not DRAFT)
            BadRequestError: 시간/날짜 오류 (Invalid time range or date outside the roster)
        """
        roster: Roster = await self.get_draft_roster(db, roster_id)
        start: time = parse_time(data.start_time)
        end: time = parse_time(data.end_time)
        self.validate_times(roster, data.date, start, end)

        shift: RosterShift = RosterShift(
            roster_id=roster.id,
            user_id=data.user_id,
            date=data.date,
            start_time=start,
            end_time=end,
            break_minutes=data.break_minutes,
            position=data.position,
            notes=data.notes,
            original_name=data.original_name,
        )
        if data.user_id is not None:
            verdict: ConflictResult = await conflict_service.check_conflict(
                db, data.user_id, data.date, start, end, roster_id=roster.id
            )
            self._apply_verdict(shift, verdict)

        db.add(shift)
        await db.flush()

        names: dict[UUID, str] = await user_repository.get_names(db, [shift.user_id])
        await audit_service.record(
            db, roster, AuditAction.SHIFT_ADDED,
            changes={"shift": shift_to_snapshot(shift, names)},
            performed_by=performed_by,
        )
        return shift

    async def update_shift(
        self,
        db: AsyncSession,
        roster_id: UUID,
        shift_id: UUID,
        data: ShiftUpdate,
        performed_by: UUID | None = None,
    ) -> RosterShift:
        """근무를 수정합니다.

        Update a shift on a DRAFT roster. The conflict verdict is recomputed
        whenever the assignee, date or time range changes; unassigning clears
        it.
        """
        roster: Roster = await self.get_draft_roster(db, roster_id)
        shift: RosterShift | None = await shift_repository.get_in_roster(db, roster_id, shift_id)
        if shift is None:
            raise NotFoundError("Shift not found")

        names: dict[UUID, str] = await user_repository.get_names(db, [shift.user_id])
        before: dict[str, Any] = shift_to_snapshot(shift, names)

        update_data: dict[str, Any] = data.model_dump(exclude_unset=True)
        if "start_time" in update_data:
            update_data["start_time"] = parse_time(update_data["start_time"])
        if "end_time" in update_data:
            update_data["end_time"] = parse_time(update_data["end_time"])
        # 필수 컬럼은 null로 지울 수 없음 — Required columns cannot be cleared
        for required in ("date", "start_time", "end_time", "break_minutes"):
            if required in update_data and update_data[required] is None:
                update_data.pop(required)

        new_date = update_data.get("date") or shift.date
        new_start: time = update_data.get("start_time") or shift.start_time
        new_end: time = update_data.get("end_time") or shift.end_time
        self.validate_times(roster, new_date, new_start, new_end)

        shift = await shift_repository.update(db, shift.id, update_data)
        if {"user_id", "date", "start_time", "end_time"} & update_data.keys():
            await self.refresh_conflict(db, shift)
            await db.flush()

        names = await user_repository.get_names(db, [shift.user_id])
        await audit_service.record(
            db, roster, AuditAction.SHIFT_UPDATED,
            changes={"before": before, "after": shift_to_snapshot(shift, names)},
            performed_by=performed_by,
        )
        return shift

    async def delete_shift(
        self,
        db: AsyncSession,
        roster_id: UUID,
        shift_id: UUID,
        performed_by: UUID | None = None,
    ) -> None:
        """근무를 삭제합니다 (Delete a shift from a DRAFT roster)."""
        roster: Roster = await self.get_draft_roster(db, roster_id)
        shift: RosterShift | None = await shift_repository.get_in_roster(db, roster_id, shift_id)
        if shift is None:
            raise NotFoundError("Shift not found")

        names: dict[UUID, str] = await user_repository.get_names(db, [shift.user_id])
        removed: dict[str, Any] = shift_to_snapshot(shift, names)
        await shift_repository.delete(db, shift.id)

        await audit_service.record(
            db, roster, AuditAction.SHIFT_REMOVED,
            changes={"shift": removed},
            performed_by=performed_by,
        )

    async def bulk_add(
        self,
        db: AsyncSession,
        roster_id: UUID,
        items: list[ShiftCreate],
        performed_by: UUID | None = None,
        action: str = AuditAction.SHIFTS_BULK_ADDED,
        changes: dict[str, Any] | None = None,
    ) -> int:
        """여러 근무를 한 번에 추가합니다.

        Conflict-check every incoming record, then insert them in one batch.
        Records in the same batch are also checked against each other.

        Returns:
            int: 생성된 근무 수 (Number of shifts created)
        """
        roster: Roster = await self.get_draft_roster(db, roster_id)
        rows: list[dict[str, Any]] = await self.prepare_rows(db, roster, items)
        created: list[RosterShift] = await shift_repository.bulk_create(db, rows)

        await audit_service.record(
            db, roster, action,
            changes={"count": len(created), **(changes or {})},
            performed_by=performed_by,
        )
        return len(created)

    async def prepare_rows(
        self,
        db: AsyncSession,
        roster: Roster,
        items: list[ShiftCreate],
    ) -> list[dict[str, Any]]:
        """일괄 삽입용 행을 만들고 각 행의 충돌을 판정합니다.

        Validate and conflict-check a batch of shifts before insertion.
        """
        rows: list[dict[str, Any]] = []
        for item in items:
            start: time = parse_time(item.start_time)
            end: time = parse_time(item.end_time)
            self.validate_times(roster, item.date, start, end)

            verdict: ConflictResult = ConflictResult.none()
            if item.user_id is not None:
                verdict = await conflict_service.check_conflict(
                    db, item.user_id, item.date, start, end, roster_id=roster.id
                )
                if not verdict.has_conflict:
                    clash = next(
                        (
                            r for r in rows
                            if r["user_id"] == item.user_id
                            and r["date"] == item.date
                            and intervals_overlap(start, end, r["start_time"], r["end_time"])
                        ),
                        None,
                    )
                    if clash is not None:
                        verdict = ConflictResult(True, ConflictType.DOUBLE_BOOKED, "Staff member has an overlapping shift")

            rows.append({
                "roster_id": roster.id,
                "user_id": item.user_id,
                "date": item.date,
                "start_time": start,
                "end_time": end,
                "break_minutes": item.break_minutes,
                "position": item.position,
                "notes": item.notes,
                "original_name": item.original_name,
                "has_conflict": verdict.has_conflict,
                "conflict_type": verdict.conflict_type.value if verdict.conflict_type else None,
            })
        return rows

    @staticmethod
    def snapshot_to_create(entry: dict[str, Any], day_offset: int = 0) -> ShiftCreate:
        """스냅샷 항목을 근무 생성 요청으로 변환 (Snapshot entry to a creation request)."""
        return ShiftCreate(
            user_id=UUID(str(entry["user_id"])) if entry.get("user_id") else None,
            date=date.fromisoformat(str(entry["date"])) + timedelta(days=day_offset),
            start_time=format_time(entry["start_time"]),
            end_time=format_time(entry["end_time"]),
            break_minutes=entry.get("break_minutes") or 0,
            position=entry.get("position"),
            notes=entry.get("notes"),
            original_name=entry.get("original_name"),
        )

    async def insert_snapshot(
        self,
        db: AsyncSession,
        roster: Roster,
        snapshot: list[dict[str, Any]],
        day_offset: int = 0,
    ) -> list[RosterShift]:
        """스냅샷의 근무를 로스터에 새로 삽입합니다.

        Insert the shifts of a snapshot into ``roster`` with fresh conflict
        verdicts. Used by version copies, restores and rollbacks; the caller
        owns the status check and the audit entry.
        """
        items: list[ShiftCreate] = [self.snapshot_to_create(e, day_offset) for e in snapshot]
        rows: list[dict[str, Any]] = await self.prepare_rows(db, roster, items)
        return await shift_repository.bulk_create(db, rows)

    async def recheck_all(
        self,
        db: AsyncSession,
        roster_id: UUID,
        performed_by: UUID | None = None,
    ) -> dict:
        """로스터의 모든 배정 근무를 재검사합니다.

        Re-evaluate every assigned shift of a roster (each excluding itself
        from the double-booking scan) and persist the verdicts.

        Returns:
            dict: total_shifts, conflict_count, conflicts (with user names and details)
        """
        roster: Roster | None = await roster_repository.get_by_id(db, roster_id)
        if roster is None:
            raise NotFoundError("Roster not found")
        if roster.status == RosterStatus.ARCHIVED:
            raise RosterNotEditableError(roster.status, "be rechecked")

        shifts: Sequence[RosterShift] = await shift_repository.get_by_roster(db, roster_id)
        names: dict[UUID, str] = await user_repository.get_names(db, (s.user_id for s in shifts))

        conflicts: list[dict] = []
        for shift in shifts:
            if shift.user_id is None:
                shift.has_conflict = False
                shift.conflict_type = None
                continue
            verdict: ConflictResult = await self.refresh_conflict(db, shift)
            if verdict.has_conflict:
                conflicts.append({
                    "shift_id": str(shift.id),
                    "user_id": str(shift.user_id),
                    "user_name": names.get(shift.user_id),
                    "date": shift.date,
                    "start_time": format_time(shift.start_time),
                    "end_time": format_time(shift.end_time),
                    "conflict_type": verdict.conflict_type.value,
                    "conflict_details": verdict.details,
                })
        await db.flush()

        if conflicts:
            await audit_service.record_event(
                db, roster, AuditAction.CONFLICTS_DETECTED,
                changes={"conflict_count": len(conflicts), "total_shifts": len(shifts)},
                performed_by=performed_by,
            )
        logger.info("[shift.recheck] roster=%s total=%d conflicts=%d", roster_id, len(shifts), len(conflicts))

        return {
            "success": True,
            "total_shifts": len(shifts),
            "conflict_count": len(conflicts),
            "conflicts": conflicts,
        }


# 싱글턴 인스턴스 — Singleton instance
shift_service: ShiftService = ShiftService()
