"""체인 무결성 점검/복구 서비스.

Chain integrity auditor.
A chain with at least one PUBLISHED member must have exactly one active
member, its highest-versioned PUBLISHED one; a chain without PUBLISHED
members must have none. ``diagnose`` reports violations and ``repair``
restores the rule. Repair is idempotent: a consistent chain is never
written to.
"""

import logging
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import Roster, RosterStatus
from app.repositories.roster_repository import roster_repository

logger = logging.getLogger(__name__)


def expected_active(members: Sequence[Roster]) -> Roster | None:
    """체인의 올바른 활성 버전 — 최고 버전의 PUBLISHED (Highest published member, if any)."""
    published: list[Roster] = [m for m in members if m.status == RosterStatus.PUBLISHED]
    return max(published, key=lambda m: m.version_number) if published else None


def inspect_chain(chain_id: str, members: Sequence[Roster]) -> dict | None:
    """체인 1개 점검 — 위반이면 진단 결과, 정상이면 None.

    Inspect one chain. Returns a finding when the active flags do not match
    the rule, None when the chain is consistent.
    """
    active: list[Roster] = [m for m in members if m.is_active]
    correct: Roster | None = expected_active(members)
    has_published: bool = correct is not None

    if has_published and len(active) == 1 and active[0].id == correct.id:
        return None
    if not has_published and not active:
        return None

    if has_published and len(active) != 1:
        issue: str = f"Expected exactly 1 active version, found {len(active)}"
    elif has_published:
        issue = f"Active version is v{active[0].version_number}, expected v{correct.version_number}"
    else:
        issue = f"Chain has no published version but {len(active)} active version(s)"

    return {
        "chain_id": chain_id,
        "issue": issue,
        "active_count": len(active),
        "active_versions": [
            {"roster_id": str(m.id), "version_number": m.version_number, "status": m.status} for m in active
        ],
        "expected_active_id": str(correct.id) if correct else None,
        "expected_active_version": correct.version_number if correct else None,
    }


class ChainIntegrityService:
    """체인 무결성 서비스 (Chain integrity auditor)."""

    async def diagnose(self, db: AsyncSession) -> dict:
        """모든 체인 점검 (Inspect every chain; read-only)."""
        chain_ids: list[str] = await roster_repository.get_all_chain_ids(db)
        findings: list[dict] = []
        for chain_id in chain_ids:
            members: Sequence[Roster] = await roster_repository.get_chain_members(db, chain_id)
            finding: dict | None = inspect_chain(chain_id, members)
            if finding is not None:
                findings.append(finding)
        return {
            "chains_checked": len(chain_ids),
            "issue_count": len(findings),
            "issues": findings,
        }

    async def repair(self, db: AsyncSession) -> dict:
        """위반 체인의 활성 플래그를 복구합니다.

        For every flagged chain, deactivate all members and activate the
        highest PUBLISHED one, inside the caller's transaction. Chains that
        already satisfy the rule are left untouched.

        Returns:
            dict: repaired, details[{chain_id, active_version_id, version_number, fixed_count}]
        """
        chain_ids: list[str] = await roster_repository.get_all_chain_ids(db)
        details: list[dict] = []
        for chain_id in chain_ids:
            members: Sequence[Roster] = await roster_repository.get_chain_members(db, chain_id, for_update=True)
            if inspect_chain(chain_id, members) is None:
                continue

            correct: Roster | None = expected_active(members)
            fixed: int = 0
            for member in members:
                should_be_active: bool = correct is not None and member.id == correct.id
                if member.is_active != should_be_active:
                    member.is_active = should_be_active
                    fixed += 1
            details.append({
                "chain_id": chain_id,
                "active_version_id": str(correct.id) if correct else None,
                "version_number": correct.version_number if correct else None,
                "fixed_count": fixed,
            })
            logger.warning(
                "[chain.repair] chain=%s active=%s fixed=%d",
                chain_id, correct.version_number if correct else None, fixed,
            )

        await db.flush()
        return {"repaired": len(details), "details": details}


# 싱글턴 인스턴스 — Singleton instance
chain_integrity_service: ChainIntegrityService = ChainIntegrityService()
