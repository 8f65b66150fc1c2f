from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate

class CRUDUser(CRUDBase[User, UserCreate, UserUpdate]):
    def exists(self, db: Session, id: int) -> bool:
        return db.query(User.id).filter(User.id == id).first() is not None

user = CRUDUser(User)
