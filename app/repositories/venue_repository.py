"""매장 레포지토리 (Venue repository)."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.venue import Venue
from app.repositories.base import BaseRepository


class VenueRepository(BaseRepository[Venue]):

    def __init__(self) -> None:
        super().__init__(Venue)

    async def get_name(self, db: AsyncSession, venue_id: UUID) -> str:
        """매장 이름, 없으면 "Unknown venue" (Venue name with a display fallback)."""
        result = await db.execute(select(Venue.name).where(Venue.id == venue_id))
        return result.scalar_one_or_none() or "Unknown venue"


venue_repository: VenueRepository = VenueRepository()
