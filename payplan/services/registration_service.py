"""
Registration service.

Creates members, fixes their sponsor once and places them in the
binary tree.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.enums import NodePosition
from payplan.models.user import User
from payplan.repositories.user_repository import UserRepository
from payplan.services.base_service import BaseService, transaction
from payplan.services.binary.placement import BinaryPlacementService
from payplan.utils.exceptions import TreeIntegrityError, ValidationError


class RegistrationService(BaseService):
    """Member registration and sponsor assignment."""

    def __init__(self, session: AsyncSession, max_tree_depth: int = 10_000) -> None:
        """
        Initialize registration service.

        Args:
            session: Async database session
            max_tree_depth: Bound on sponsor-chain and placement walks
        """
        super().__init__(session)
        self.max_tree_depth = max_tree_depth
        self.user_repo = UserRepository(session)
        self.placement = BinaryPlacementService(session, max_nodes=max_tree_depth)

    @transaction
    async def register(
        self,
        username: str | None = None,
        sponsor_id: int | None = None,
        placement_parent_id: int | None = None,
        placement_side: NodePosition | None = None,
    ) -> User:
        """
        Register a member.

        Args:
            username: Optional unique username
            sponsor_id: Sponsor user ID (None for a root member)
            placement_parent_id: Explicit binary parent
            placement_side: Side under the explicit parent

        Returns:
            Created user

        Raises:
            ValidationError: Sponsor not found
            TreeIntegrityError: Placement impossible
        """
        if sponsor_id is not None:
            sponsor = await self.user_repo.get_by_id(sponsor_id)
            if sponsor is None:
                raise ValidationError(f"Sponsor {sponsor_id} not found")

        user = await self.user_repo.create(username=username, sponsor_id=sponsor_id)
        if sponsor_id is not None:
            await self.user_repo.increment_direct_count(sponsor_id)

        await self.placement.place(
            user.id,
            sponsor_id=sponsor_id,
            parent_id=placement_parent_id,
            side=placement_side,
        )

        self.logger.info(
            "Member registered",
            extra={"user_id": user.id, "sponsor_id": sponsor_id},
        )
        return user

    @transaction
    async def assign_sponsor(self, user_id: int, sponsor_id: int) -> User:
        """
        Set the sponsor of a member registered without one.

        Args:
            user_id: Member
            sponsor_id: New sponsor

        Returns:
            Updated user

        Raises:
            ValidationError: User or sponsor not found
            TreeIntegrityError: Sponsor already set or edge creates a loop
        """
        user = await self.user_repo.lock(user_id)
        if user is None:
            raise ValidationError(f"User {user_id} not found")
        if user.sponsor_id is not None:
            raise TreeIntegrityError(f"Sponsor of user {user_id} is already set")
        if sponsor_id == user_id:
            raise TreeIntegrityError("User cannot sponsor themselves")

        sponsor = await self.user_repo.get_by_id(sponsor_id)
        if sponsor is None:
            raise ValidationError(f"Sponsor {sponsor_id} not found")

        chain = await self.user_repo.get_sponsor_chain(
            sponsor_id, self.max_tree_depth
        )
        if user_id in {link.user_id for link in chain}:
            self.logger.warning(
                "Sponsor loop rejected",
                extra={"user_id": user_id, "sponsor_id": sponsor_id},
            )
            raise TreeIntegrityError(
                f"User {sponsor_id} is a downline of user {user_id}"
            )

        user.sponsor_id = sponsor_id
        await self.user_repo.increment_direct_count(sponsor_id)
        await self.session.flush()
        return user
