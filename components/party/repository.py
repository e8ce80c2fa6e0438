"""Repository for party lookups."""

from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.party.models import Party, PartyType


class PartyDirectory(Protocol):
    """What the loan engine needs from the party directory."""

    async def exists(self, party_id: int) -> bool: ...

    async def get_by_id(self, party_id: int) -> Optional[Party]: ...


class PartyRepository:
    """Party directory backed by the parties table."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def get_by_id(self, party_id: int) -> Optional[Party]:
        """Get party by ID."""
        result = await self.session.execute(
            select(Party).where(Party.id == party_id)
        )
        return result.scalar_one_or_none()

    async def exists(self, party_id: int) -> bool:
        """Check if party with given ID exists."""
        result = await self.session.execute(
            select(Party.id).where(Party.id == party_id)
        )
        return result.scalar_one_or_none() is not None

    async def create(
        self,
        name: str,
        party_type: PartyType,
        mobile_number: str = "",
        place: str = "",
    ) -> Party:
        """Create a new party."""
        party = Party(
            name=name,
            party_type=party_type,
            mobile_number=mobile_number,
            place=place,
        )
        self.session.add(party)
        await self.session.commit()
        await self.session.refresh(party)
        return party
