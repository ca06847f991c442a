# app/repositories/profile_repo.py
import uuid

from sqlmodel import Session, select

from app.models.profile import Profile


class ProfileRepository:
    """
    Data access layer for Profile.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_id(self, session: Session, profile_id: uuid.UUID) -> Profile | None:
        """Return a Profile by primary key, or None if not found."""
        return session.get(Profile, profile_id)

    def get_by_email(self, session: Session, email: str) -> Profile | None:
        """Return a Profile by unique email, or None if not found."""
        stmt = select(Profile).where(Profile.email == email)
        return session.exec(stmt).first()

    def list_newest_first(self, session: Session) -> list[Profile]:
        stmt = select(Profile).order_by(Profile.created_at.desc())
        return list(session.exec(stmt).all())

    def create(self, session: Session, profile: Profile) -> Profile:
        """Insert a new Profile and return the persisted row."""
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile

    def update(self, session: Session, profile: Profile) -> Profile:
        """Persist changes to an existing Profile."""
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile

    def delete(self, session: Session, profile: Profile) -> None:
        session.delete(profile)
        session.commit()
