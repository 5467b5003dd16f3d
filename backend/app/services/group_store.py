"""Groups and their user memberships: CRUD plus atomic membership reconciliation."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

from sqlalchemy import delete, exists, insert, select, tuple_, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app import models
from app.database import SessionLocal
from app.errors import ConnectivityError, ConstraintViolationError, NotFoundError
from app.schemas import Group, GroupCreate, GroupUpdate, GroupUser, GroupUserModel

logger = logging.getLogger(__name__)

BATCH_INSERT_CHUNK_SIZE = 1000
BATCH_DELETE_CHUNK_SIZE = 500

GROUP_COLUMNS = (
    models.Group.id,
    models.Group.name,
    models.Group.description,
    models.Group.created_at,
    models.Group.created_by,
)


def row_to_group(row) -> Group:
    if row is None:
        raise NotFoundError("No group found")
    return Group(
        id=row.id,
        name=row.name,
        description=row.description,
        created_at=row.created_at,
        created_by=row.created_by,
    )


def row_to_group_user(row) -> GroupUser:
    if row is None:
        raise NotFoundError("No group user found")
    return GroupUser(group_id=row.group_id, user_id=row.user_id, type=row.type)


def group_to_row(group: GroupCreate) -> dict:
    return {
        "name": group.name,
        "description": group.description,
        "created_by": group.created_by,
    }


@asynccontextmanager
async def translate_errors(operation: str) -> AsyncIterator[None]:
    """Re-raise SQLAlchemy failures as store errors, keeping the original as __cause__."""
    try:
        yield
    except IntegrityError as exc:
        logger.warning("%s rejected by a constraint: %s", operation, exc.orig)
        raise ConstraintViolationError(str(exc.orig)) from exc
    except (OperationalError, InterfaceError) as exc:
        logger.warning("%s could not reach the database: %s", operation, exc.orig)
        raise ConnectivityError(str(exc.orig)) from exc


class GroupStore:
    def __init__(self, session_factory: async_sessionmaker = SessionLocal):
        self.session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside a begun transaction; commits on exit, rolls back on error."""
        async with self.session_factory() as session:
            async with session.begin():
                yield session

    async def create(self, group: GroupCreate) -> Group:
        async with translate_errors("create group"):
            async with self.session_factory() as session:
                db_group = models.Group(**group_to_row(group))
                session.add(db_group)
                await session.commit()
                await session.refresh(db_group)
        logger.info("Created group %s (%s)", db_group.id, db_group.name)
        return row_to_group(db_group)

    async def get(self, id: int) -> Group:
        async with translate_errors("get group"):
            async with self.session_factory() as session:
                result = await session.execute(select(*GROUP_COLUMNS).where(models.Group.id == id))
                row = result.first()
        return row_to_group(row)

    async def get_all(self) -> list[Group]:
        async with translate_errors("list groups"):
            async with self.session_factory() as session:
                result = await session.execute(select(*GROUP_COLUMNS).order_by(models.Group.id))
                rows = result.all()
        return [row_to_group(row) for row in rows]

    async def update(self, group: GroupUpdate) -> Group:
        async with translate_errors("update group"):
            async with self.session_factory() as session:
                result = await session.execute(
                    update(models.Group)
                    .where(models.Group.id == group.id)
                    .values(name=group.name, description=group.description)
                    .returning(*GROUP_COLUMNS)
                    .execution_options(synchronize_session=False)
                )
                row = result.first()
                await session.commit()
        updated = row_to_group(row)
        logger.info("Updated group %s", updated.id)
        return updated

    async def delete(self, id: int) -> None:
        async with translate_errors("delete group"):
            async with self.session_factory() as session:
                await session.execute(
                    delete(models.Group)
                    .where(models.Group.id == id)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        logger.info("Deleted group %s", id)

    async def delete_all(self) -> None:
        async with translate_errors("delete all groups"):
            async with self.session_factory() as session:
                await session.execute(delete(models.Group).execution_options(synchronize_session=False))
                await session.commit()
        logger.info("Deleted all groups")

    def destroy(self) -> None:
        """The store holds no connections of its own; the session factory owns the pool."""

    async def exists(self, id: int) -> bool:
        async with translate_errors("check group"):
            async with self.session_factory() as session:
                present = await session.scalar(select(exists().where(models.Group.id == id)))
        return bool(present)

    async def exists_with_name(self, name: str) -> bool:
        async with translate_errors("check group name"):
            async with self.session_factory() as session:
                present = await session.scalar(select(exists().where(models.Group.name == name)))
        return bool(present)

    async def get_all_users_by_groups(self, group_ids: Iterable[int]) -> list[GroupUser]:
        stmt = (
            select(models.GroupUser.group_id, models.User.id.label("user_id"), models.GroupUser.type)
            .select_from(models.GroupUser)
            .join(models.User, models.User.id == models.GroupUser.user_id)
            .where(models.GroupUser.group_id.in_(list(group_ids)))
        )
        async with translate_errors("list group users"):
            async with self.session_factory() as session:
                rows = (await session.execute(stmt)).all()
        return [row_to_group_user(row) for row in rows]

    async def add_new_users_to_group(
        self,
        session: AsyncSession,
        group_id: int,
        users: Iterable[GroupUserModel],
        user_name: str,
    ) -> None:
        rows = [
            {"group_id": group_id, "user_id": user.user_id, "type": user.type, "created_by": user_name}
            for user in users
        ]
        if not rows:
            return
        async with translate_errors("add users to group"):
            for start in range(0, len(rows), BATCH_INSERT_CHUNK_SIZE):
                await session.execute(
                    insert(models.GroupUser), rows[start:start + BATCH_INSERT_CHUNK_SIZE]
                )
        logger.debug("Inserted %d memberships into group %s", len(rows), group_id)

    async def delete_old_users_from_group(
        self,
        session: AsyncSession,
        deletable_users: Iterable[GroupUser],
    ) -> None:
        # Pairs may name groups other than the one being reconciled.
        pairs = [(user.group_id, user.user_id) for user in deletable_users]
        if not pairs:
            return
        async with translate_errors("remove users from group"):
            for start in range(0, len(pairs), BATCH_DELETE_CHUNK_SIZE):
                await session.execute(
                    delete(models.GroupUser)
                    .where(
                        tuple_(models.GroupUser.group_id, models.GroupUser.user_id).in_(
                            pairs[start:start + BATCH_DELETE_CHUNK_SIZE]
                        )
                    )
                    .execution_options(synchronize_session=False)
                )
        logger.debug("Removed %d memberships", len(pairs))

    async def update_group_users(
        self,
        group_id: int,
        new_users: Iterable[GroupUserModel],
        deletable_users: Iterable[GroupUser],
        user_name: str,
    ) -> None:
        """Add ``new_users`` to the group and drop ``deletable_users`` in one transaction.

        Either both batches are persisted or neither is. Adding a user that is already
        a member raises ConstraintViolationError and leaves membership untouched.
        """
        new_users = list(new_users)
        deletable_users = list(deletable_users)
        async with translate_errors("update group users"):
            async with self.transaction() as tx:
                await self.add_new_users_to_group(tx, group_id, new_users, user_name)
                await self.delete_old_users_from_group(tx, deletable_users)
        logger.info(
            "Group %s membership updated by %s: %d added, %d removed",
            group_id,
            user_name,
            len(new_users),
            len(deletable_users),
        )
