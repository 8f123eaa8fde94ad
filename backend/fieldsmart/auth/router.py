import uuid

from fastapi import APIRouter

from fieldsmart.auth import service
from fieldsmart.auth.schemas import (
    Credentials,
    ProfileUpdate,
    RefreshRequest,
    Registration,
    RegistrationOut,
    RoleChange,
    TenantOut,
    UserInvite,
    UserOut,
)
from fieldsmart.dependencies import AdminUser, AppSettings, CurrentUser, DbSession

router = APIRouter()


@router.post("/register", status_code=201)
async def register(data: Registration, db: DbSession) -> dict:
    user, tenant = await service.register_tenant(db, data)
    return {
        "data": RegistrationOut(
            user=UserOut.model_validate(user), tenant=TenantOut.model_validate(tenant)
        )
    }


@router.post("/login")
async def login(credentials: Credentials, db: DbSession, settings: AppSettings) -> dict:
    return {"data": await service.login(db, credentials.email, credentials.password, settings)}


@router.post("/refresh")
async def refresh(body: RefreshRequest, db: DbSession, settings: AppSettings) -> dict:
    return {"data": await service.rotate_refresh_token(db, body.refresh_token, settings)}


@router.post("/logout")
async def logout(body: RefreshRequest, db: DbSession, _: CurrentUser) -> dict:
    await service.revoke_refresh_token(db, body.refresh_token)
    return {"data": {"message": "Logged out successfully"}}


@router.get("/me")
async def get_me(current_user: CurrentUser) -> dict:
    return {"data": UserOut.model_validate(current_user)}


@router.put("/me")
async def update_me(changes: ProfileUpdate, current_user: CurrentUser, db: DbSession) -> dict:
    user = await service.update_profile(db, current_user, changes)
    return {"data": UserOut.model_validate(user)}


# ---------------------------------------------------------------------------
# Tenant user administration
# ---------------------------------------------------------------------------


@router.get("/users")
async def list_users(admin: AdminUser, db: DbSession) -> dict:
    users = await service.list_tenant_users(db, admin.tenant_id)
    return {"data": [UserOut.model_validate(u) for u in users]}


@router.post("/users", status_code=201)
async def create_user(data: UserInvite, admin: AdminUser, db: DbSession) -> dict:
    return {"data": UserOut.model_validate(await service.invite_user(db, admin, data))}


@router.put("/users/{user_id}/role")
async def update_user_role(user_id: uuid.UUID, body: RoleChange, admin: AdminUser, db: DbSession) -> dict:
    user = await service.change_role(db, admin, user_id, body.role)
    return {"data": UserOut.model_validate(user)}


@router.delete("/users/{user_id}")
async def deactivate_user(user_id: uuid.UUID, admin: AdminUser, db: DbSession) -> dict:
    user = await service.deactivate_user(db, admin, user_id)
    return {"data": {"message": f"User {user.email} deactivated"}}
