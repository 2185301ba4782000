from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from models.user import User
from core.exceptions import EmailTakenError, InvalidCredentialsError
from core.security import hash_password, verify_password, create_token
from core.logger import logger

class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).filter(User.email == email))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).filter(User.id == user_id))
        return result.scalar_one_or_none()

    async def register(self, username: str, email: str, password: str) -> User:
        if await self.get_by_email(email):
            raise EmailTakenError()

        user = User(username=username, email=email, password_hash=hash_password(password))
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            await self.db.rollback()
            raise EmailTakenError()
        await self.db.refresh(user)
        logger.info("New user created", user_id=user.id)
        return user

    async def authenticate(self, email: str, password: str) -> str:
        """Check credentials and issue a token."""
        user = await self.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.info("Sign-in rejected", email=email)
            raise InvalidCredentialsError()
        return create_token(user.id)
