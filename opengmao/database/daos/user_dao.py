"""
User DAO

Purpose
-------
Data-access layer for the `AppUser` entity: create accounts and look users up
by email or id. Password hashing happens in the service layer before the
entity reaches this DAO.

Error Handling
--------------
- Methods print the failing method and re-raise.
"""

from sqlalchemy.orm import Session
from opengmao.database.entities.user import AppUser
from uuid import UUID
from typing import List


class UserDao:
    """Data Access Object for `AppUser`."""

    def createUser(self, session: Session, user: AppUser) -> bool:
        """
        Stage a new user in the session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        user : AppUser
            User entity with an already hashed password.

        Returns
        -------
        bool
            True once the user is added to the session.
        """
        try:
            session.add(user)
            return True
        except Exception as e:
            print(f"Error in UserDao.createUser. Error: {e}")
            raise e

    def fetchUserByEmail(self, session: Session, email: str) -> List[AppUser]:
        """Fetch users with the given email (0 or 1 rows)."""
        try:
            return session.query(AppUser).filter(AppUser.email == email).all()
        except Exception as e:
            print(f"Error in UserDao.fetchUserByEmail. Error: {e}")
            raise e

    def fetchUserById(self, session: Session, user_id: UUID) -> List[AppUser]:
        """Fetch users with the given id (0 or 1 rows)."""
        try:
            return session.query(AppUser).filter(AppUser.id == user_id).all()
        except Exception as e:
            print(f"Error in UserDao.fetchUserById. Error: {e}")
            raise e
