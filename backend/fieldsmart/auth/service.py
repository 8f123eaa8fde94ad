"""Tenant sign-up, credential checks, token rotation and tenant user administration."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fieldsmart.auth.models import RefreshToken, Role, Tenant, User
from fieldsmart.auth.schemas import ProfileUpdate, Registration, TokenPair, UserInvite
from fieldsmart.auth.utils import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    hash_token,
    slugify,
    verify_password,
)
from fieldsmart.config import Settings
from fieldsmart.core.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password."
INVALID_REFRESH = "Invalid or expired refresh token."


async def _user_by_email(db: AsyncSession, email: str) -> User | None:
    return (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()


async def _new_user(
    db: AsyncSession, tenant_id: uuid.UUID, email: str, password: str, full_name: str, role: Role
) -> User:
    if await _user_by_email(db, email) is not None:
        raise ConflictError(f"A user with email {email} already exists.")
    user = User(
        tenant_id=tenant_id,
        email=email,
        hashed_password=hash_password(password),
        full_name=full_name,
        role=role,
    )
    db.add(user)
    return user


async def _free_slug(db: AsyncSession, company_name: str) -> str:
    """Slug of the company name, suffixed ``-2``, ``-3``... until unused."""
    base = slugify(company_name)
    taken = set(
        (await db.execute(select(Tenant.slug).where(Tenant.slug.startswith(base)))).scalars()
    )
    slug, suffix = base, 2
    while slug in taken:
        slug, suffix = f"{base}-{suffix}", suffix + 1
    return slug


async def register_tenant(db: AsyncSession, data: Registration) -> tuple[User, Tenant]:
    tenant = Tenant(name=data.company_name, slug=await _free_slug(db, data.company_name))
    db.add(tenant)
    await db.flush()

    admin = await _new_user(db, tenant.id, data.email, data.password, data.full_name, Role.ADMIN)
    await db.commit()
    await db.refresh(admin)
    await db.refresh(tenant)
    logger.info("Registered tenant %s (%s)", tenant.slug, tenant.id)
    return admin, tenant


async def _issue_tokens(db: AsyncSession, user: User, settings: Settings) -> TokenPair:
    refresh_token = create_refresh_token(user.id, settings)
    db.add(RefreshToken(
        user_id=user.id,
        token_hash=hash_token(refresh_token),
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days),
    ))
    await db.commit()
    return TokenPair(
        access_token=create_access_token(user.id, user.tenant_id, user.role.value, settings),
        refresh_token=refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


async def login(db: AsyncSession, email: str, password: str, settings: Settings) -> TokenPair:
    user = await _user_by_email(db, email)
    # One message for unknown email and wrong password alike
    if user is None or not verify_password(password, user.hashed_password):
        raise ValidationError(INVALID_CREDENTIALS)
    if not user.is_active:
        raise ValidationError("Account is deactivated.")

    user.last_login_at = datetime.now(timezone.utc)
    return await _issue_tokens(db, user, settings)


async def rotate_refresh_token(db: AsyncSession, refresh_token: str, settings: Settings) -> TokenPair:
    """Spend a refresh token and hand out a fresh pair."""
    claims = decode_token(refresh_token, settings)
    if claims is None or claims.token_type != REFRESH:
        raise ValidationError(INVALID_REFRESH)

    stored = (await db.execute(
        select(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token))
    )).scalar_one_or_none()
    if stored is None or stored.revoked or stored.is_expired(datetime.now(timezone.utc)):
        raise ValidationError(INVALID_REFRESH)
    stored.revoked = True

    user = await db.get(User, claims.sub)
    if user is None or not user.is_active:
        raise ValidationError("User not found or inactive.")
    return await _issue_tokens(db, user, settings)


async def revoke_refresh_token(db: AsyncSession, refresh_token: str) -> None:
    await db.execute(
        update(RefreshToken)
        .where(RefreshToken.token_hash == hash_token(refresh_token))
        .values(revoked=True)
    )
    await db.commit()


async def purge_refresh_tokens(db: AsyncSession, now: datetime | None = None) -> int:
    """Delete refresh tokens that are revoked or past their expiry."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        delete(RefreshToken).where(
            or_(RefreshToken.revoked.is_(True), RefreshToken.expires_at < now)
        )
    )
    await db.commit()
    return result.rowcount or 0


async def update_profile(db: AsyncSession, user: User, changes: ProfileUpdate) -> User:
    if changes.full_name is not None:
        user.full_name = changes.full_name
    if changes.password is not None:
        user.hashed_password = hash_password(changes.password)
    await db.commit()
    await db.refresh(user)
    return user


async def list_tenant_users(db: AsyncSession, tenant_id: uuid.UUID) -> list[User]:
    result = await db.execute(
        select(User).where(User.tenant_id == tenant_id).order_by(User.created_at)
    )
    return list(result.scalars().all())


async def invite_user(db: AsyncSession, admin: User, data: UserInvite) -> User:
    user = await _new_user(db, admin.tenant_id, data.email, data.password, data.full_name, data.role)
    await db.commit()
    await db.refresh(user)
    logger.info("User %s added to tenant %s as %s", user.email, admin.tenant_id, user.role.value)
    return user


async def _managed_user(db: AsyncSession, admin: User, user_id: uuid.UUID) -> User:
    """A user of the admin's tenant other than the admin; other tenants read as missing."""
    user = await db.get(User, user_id)
    if user is None or user.tenant_id != admin.tenant_id:
        raise NotFoundError("User", str(user_id))
    if user.id == admin.id:
        raise ValidationError("Administrators cannot change their own account here.")
    return user


async def change_role(db: AsyncSession, admin: User, user_id: uuid.UUID, role: Role) -> User:
    user = await _managed_user(db, admin, user_id)
    user.role = role
    await db.commit()
    await db.refresh(user)
    return user


async def deactivate_user(db: AsyncSession, admin: User, user_id: uuid.UUID) -> User:
    """Disable the account and revoke every refresh token it holds."""
    user = await _managed_user(db, admin, user_id)
    user.is_active = False
    await db.execute(
        update(RefreshToken).where(RefreshToken.user_id == user.id).values(revoked=True)
    )
    await db.commit()
    logger.info("User %s deactivated by %s", user.email, admin.email)
    return user
