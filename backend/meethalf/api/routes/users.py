"""User Routes — profile, public handle and personal statistics.

Invariants:
    - Every route requires a signed-in user; check-userid and complete-setup work
      before the user has a handle
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.api.dependencies import get_current_user
from meethalf.infrastructure.database import get_db
from meethalf.models.user import User
from meethalf.schemas.responses import user_dict
from meethalf.schemas.user import CompleteSetup, HandleCheck, ProfileUpdate
from meethalf.services.user_service import UserService

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("/me/stats")
async def my_stats(
    user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db),
):
    return await UserService(db).stats(user)


@router.get("/profile")
async def get_profile(user: User = Depends(get_current_user)):
    return {"user": user_dict(user)}


@router.patch("/profile")
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await UserService(db).update_profile(user.id, body)
    return {"user": user_dict(updated)}


@router.post("/check-userid")
async def check_userid(
    body: HandleCheck,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Is the handle free? Suggests an alternative from the caller's email when not."""
    return await UserService(db).check_handle(body.user_id, user.email)


@router.post("/complete-setup")
async def complete_setup(
    body: CompleteSetup,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await UserService(db).complete_setup(user.id, body)
    return {"user": user_dict(updated)}
