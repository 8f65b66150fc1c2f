from sqlalchemy.orm import Session
from typing import Optional

from app.crud.base import CRUDBase
from app.models.category import Category
from app.schemas.roadmap import CategoryCreate, CategoryUpdate

class CRUDCategory(CRUDBase[Category, CategoryCreate, CategoryUpdate]):
    def get_by_label(self, db: Session, *, label: str) -> Optional[Category]:
        return db.query(Category).filter(Category.label == label).first()

category = CRUDCategory(Category)
