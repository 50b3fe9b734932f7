"""Points sink contract and the award step run after each focus phase."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger("focus_timer.points")


class Profile(BaseModel):
    id: str
    email: str = ""
    name: str = ""
    points: int = Field(default=0, ge=0)
    streak: int = 0
    rank: str = "Scholar"


class PointsSink(Protocol):
    """Whatever stores the signed-in student's profile."""

    async def get_current_profile(self) -> Optional[Profile]: ...

    async def save_profile(self, profile: Profile) -> bool: ...


async def award_points(sink: PointsSink, amount: int) -> bool:
    """Add ``amount`` to the current profile's balance.

    Returns False when there is no signed-in profile, the save is rejected,
    or either call raises. Never propagates store errors.
    """
    try:
        profile = await sink.get_current_profile()
        if profile is None:
            logger.warning(f"Award of {amount} points skipped: no signed-in profile")
            return False

        updated = profile.model_copy(update={"points": profile.points + amount})
        if not await sink.save_profile(updated):
            logger.warning(f"Award of {amount} points rejected by store for {profile.id}")
            return False
    except Exception as e:
        logger.warning(f"Award of {amount} points failed: {e}")
        return False

    logger.info(f"Awarded {amount} points to {profile.id} (balance {updated.points})")
    return True
