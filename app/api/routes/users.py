# app/api/routes/users.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.identity import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.repositories.user_directory import UserDirectory
from app.schemas.user import UserCreate, UserRead, UserRole, UserUpdate

router = APIRouter(prefix="/users", tags=["Users"])


@router.post(
    "",
    response_model=UserRead,
    status_code=HTTPStatus.CREATED,
    summary="Register a user profile",
    description=(
        "Create the scheduling profile of a user. Credentials live with the "
        "upstream identity provider; the returned `id` is what the gateway "
        "forwards in the identity header."
    ),
    responses={
        400: {
            "description": "A user with the same e-mail already exists.",
            "content": {
                "application/json": {
                    "example": {"detail": "User with email 'jane.doe@example.com' already exists."}
                }
            },
        },
    },
)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> UserRead:
    """
    Enforces uniqueness of the e-mail address.
    """
    directory = UserDirectory(db)

    if await directory.get_by_email(payload.email) is not None:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"User with email '{payload.email}' already exists.",
        )

    user = await directory.create(
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
    )
    await db.commit()

    return UserRead.model_validate(user)

@router.get(
    "",
    response_model=list[UserRead],
    summary="List users",
    description=(
        "Users that can be picked as meeting participants. Only active users "
        "are returned unless `only_active=false` is passed."
    ),
    responses={401: {"description": "Missing or unknown identity."}},
)
async def list_users(
    role: UserRole | None = Query(default=None),
    only_active: bool = Query(
        default=True,
        description="If false, returns only inactive users.",
    ),
    search: str | None = Query(default=None, min_length=1),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[UserRead]:
    users = await UserDirectory(db).list_users(role=role, only_active=only_active, search=search)
    return [UserRead.model_validate(u) for u in users]


@router.get(
    "/{user_id}",
    response_model=UserRead,
    summary="Get a user by ID",
    responses={
        401: {"description": "Missing or unknown identity."},
        404: {"description": "No user exists with the given ID."},
    },
)
async def get_user(
    user_id: str = Path(..., description="User ID."),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserRead:
    user = await UserDirectory(db).get(user_id)
    if user is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"User with id {user_id} not found.",
        )
    return UserRead.model_validate(user)


@router.patch(
    "/{user_id}",
    response_model=UserRead,
    summary="Update your own profile",
    description=(
        "Callers may only change their own first and last name. Role and "
        "activity are not editable through the API."
    ),
    responses={
        401: {"description": "Missing or unknown identity."},
        403: {"description": "Caller tried to edit another user's profile."},
        422: {"description": "Body contains fields other than the names."},
    },
)
async def update_user(
    payload: UserUpdate,
    user_id: str = Path(..., description="User ID."),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserRead:
    if user_id != current_user.id:
        raise HTTPException(
            status_code=HTTPStatus.FORBIDDEN,
            detail="You can only update your own profile.",
        )

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    user = await UserDirectory(db).update(current_user, changes)
    await db.commit()
    await db.refresh(user)

    return UserRead.model_validate(user)
