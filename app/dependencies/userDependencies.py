from typing import Annotated, Optional
from fastapi import Depends, Header, HTTPException, status
from uuid import UUID
from app.dependencies.dbDependecies import db_dependency
from app.modules.users.models import User


def get_current_user(
    db: db_dependency,
    x_user_id: Optional[str] = Header(None, alias="X-User-ID")
) -> User:
    """
    Operador que actúa en la petición.

    La autenticación la resuelve el gateway del POS; aquí solo se recibe el
    id del usuario ya autenticado y se valida que exista y esté activo.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-User-ID header"
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format. Must be a valid UUID"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Usuario no encontrado o inactivo"
        )
    return user


user_dependency = Annotated[User, Depends(get_current_user)]
