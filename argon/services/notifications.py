from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from argon.models import Notification, NotificationType, Role, User, UserTenant

# Roles that own the chemical register
SDS_RECIPIENT_ROLES = (Role.ADMIN, Role.HMS)


async def find_recipients(
    session: AsyncSession,
    tenant_id: str,
    roles: Iterable[Role] = SDS_RECIPIENT_ROLES,
    email_opt_in: bool = False,
) -> list[User]:
    """Users of a tenant holding one of ``roles``.

    With ``email_opt_in`` only users with an email address who accept email
    notifications are returned.
    """
    stmt = (
        select(User)
        .join(UserTenant, UserTenant.user_id == User.id)
        .where(UserTenant.tenant_id == tenant_id, UserTenant.role.in_(list(roles)))
        .order_by(User.id)
    )
    if email_opt_in:
        stmt = stmt.where(User.email.is_not(None), User.notify_by_email.is_(True))

    return list((await session.scalars(stmt)).all())


async def notify_users(
    session: AsyncSession,
    tenant_id: str,
    users: Iterable[User],
    *,
    type: NotificationType,
    title: str,
    message: str,
    link: str | None = None,
) -> list[Notification]:
    notifications = [
        Notification(
            tenant_id=tenant_id,
            user_id=user.id,
            type=type,
            title=title,
            message=message,
            link=link,
        )
        for user in users
    ]
    session.add_all(notifications)
    await session.flush()
    return notifications
