from fastapi import Depends, HTTPException, Path, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from mess_manager.core.clock import Clock, SystemClock
from mess_manager.core.exceptions import UnauthorizedException
from mess_manager.core.notifications import LoggingNotifier, Notifier
from mess_manager.core.security import decode_jwt
from mess_manager.database import atomic, get_db
from mess_manager.models.mess_context import MessContext
from mess_manager.models.person import Person
from mess_manager.repositories.person_repository import PersonRepository
from mess_manager.services.mess_service import MessService

security = HTTPBearer()


def get_clock() -> Clock:
    """Mess-local clock; overridden with a FixedClock in tests."""
    return SystemClock()


def get_notifier() -> Notifier:
    return LoggingNotifier()


async def get_current_person(
    credentials: HTTPAuthorizationCredentials = Depends(security), db: Session = Depends(get_db)
) -> Person:
    """
    FastAPI dependency to validate JWT and get/create the person.

    Flow:
    1. Extract token from Authorization: Bearer <token>
    2. Validate JWT using shared SECRET_KEY
    3. Extract auth subject from 'sub' claim (name/email claims are optional)
    4. Get or auto-create the Person record
    5. Return Person for use in endpoints

    Raises:
        HTTPException 401: If token invalid or expired
    """
    try:
        payload = decode_jwt(credentials.credentials)
    except UnauthorizedException as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    with atomic(db):
        person = PersonRepository(db).get_or_create_by_auth_id(
            str(payload["sub"]), name=payload.get("name"), email=payload.get("email")
        )
    return person


async def get_mess_context(
    mess_id: int = Path(..., gt=0),
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> MessContext:
    """
    Resolve the caller's context in the mess named by the path.

    Raises:
        NotFoundException: If the mess doesn't exist
        ForbiddenException: If the caller is not an active member
    """
    return MessService(db, clock).build_context(person, mess_id)
