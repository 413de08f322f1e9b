from typing import Optional, TypeVar, Generic, Type
from sqlalchemy.orm import Session

T = TypeVar('T')


class BaseRepository(Generic[T]):
    """Lookup by id and insert for one model class; queries live on the subclasses"""

    def __init__(self, db: Session, model_class: Type[T]):
        self.db = db
        self.model_class = model_class

    def get_by_id(self, id: int) -> Optional[T]:
        return self.db.query(self.model_class).filter(self.model_class.id == id).first()

    def create(self, commit: bool = True, **kwargs) -> T:
        """Insert a row; with commit=False the row is only flushed"""
        instance = self.model_class(**kwargs)
        self.db.add(instance)
        if commit:
            self.db.commit()
            self.db.refresh(instance)
        else:
            self.db.flush()
        return instance
