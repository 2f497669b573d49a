from sqlalchemy.orm import Session
from mess_manager.models.person import Person


class PersonRepository:
    """Repository for Person model operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create_by_auth_id(
        self, auth_user_id: str, name: str | None = None, email: str | None = None
    ) -> Person:
        """
        Get person by auth_user_id or create if doesn't exist.

        Called when a person makes their first API request with a valid JWT,
        and when a manager adds someone who never signed in.

        Args:
            auth_user_id: Subject from the auth service JWT 'sub' claim
            name: Display name for a newly created person
            email: Email for a newly created person

        Returns:
            Person object (either existing or newly created)
        """
        person = self.get_by_auth_id(auth_user_id)

        if not person:
            person = Person(auth_user_id=auth_user_id, name=name, email=email)
            self.db.add(person)
            self.db.flush()

        return person

    def get_by_auth_id(self, auth_user_id: str) -> Person | None:
        """Get person by auth_user_id"""
        return self.db.query(Person).filter(Person.auth_user_id == auth_user_id).first()

    def get_by_id(self, person_id: int) -> Person | None:
        """Get person by internal ID"""
        return self.db.query(Person).filter(Person.id == person_id).first()
