from typing import Generic, TypeVar, Type, Optional, List, Any, Dict
from sqlalchemy.orm import Session
from sqlalchemy import select
from pydantic import BaseModel
from fieldops.database import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Generic CRUD class with business isolation via explicit business_id.
    
    Every read filters by business_id; models carrying ``is_deleted`` are
    soft-deleted and hidden from reads.
    
    Type Parameters:
        ModelType: SQLAlchemy model class
        CreateSchemaType: Pydantic schema for creating records
        UpdateSchemaType: Pydantic schema for updating records
    """
    
    def __init__(self, model: Type[ModelType]):
        """
        Initialize CRUD object with model class.
        
        Args:
            model: SQLAlchemy model class
        """
        self.model = model
        self.soft_deletes = hasattr(model, "is_deleted")

    def _scoped(self, business_id: int):
        stmt = select(self.model).where(self.model.business_id == business_id)
        if self.soft_deletes:
            stmt = stmt.where(self.model.is_deleted.is_(False))
        return stmt
    
    def get(self, db: Session, id: int, business_id: int) -> Optional[ModelType]:
        """
        Retrieve a single record by ID with business filtering.
        
        Args:
            db: Database session
            id: Record ID
            business_id: Business ID for isolation
            
        Returns:
            Model instance or None if not found or doesn't belong to the business
        """
        stmt = self._scoped(business_id).where(self.model.id == id)
        result = db.execute(stmt)
        return result.scalar_one_or_none()

    def get_multi_by_ids(self, db: Session, *, ids: List[int], business_id: int) -> List[ModelType]:
        if not ids:
            return []
        stmt = self._scoped(business_id).where(self.model.id.in_(ids))
        return list(db.execute(stmt).scalars().all())
    
    def get_multi(
        self, 
        db: Session, 
        *, 
        skip: int = 0, 
        limit: int = 100,
        business_id: int
    ) -> List[ModelType]:
        """
        Retrieve multiple records with pagination and business filtering.
        """
        stmt = self._scoped(business_id).order_by(self.model.id).offset(skip).limit(limit)
        result = db.execute(stmt)
        return list(result.scalars().all())
    
    def create(
        self,
        db: Session,
        *,
        obj_in: CreateSchemaType,
        business_id: int
    ) -> ModelType:
        """
        Create a new record associated with a business.
        
        Args:
            db: Database session
            obj_in: Pydantic schema with creation data
            business_id: Business ID for isolation
            
        Returns:
            Created model instance
        """
        obj_data = obj_in.model_dump()
        db_obj = self.model(business_id=business_id, **obj_data)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj
    
    def update(
        self,
        db: Session,
        *,
        db_obj: ModelType,
        obj_in: UpdateSchemaType | Dict[str, Any],
        commit: bool = True
    ) -> ModelType:
        """
        Update an existing record.
        
        Note: This method assumes the db_obj was already retrieved using
        get() or similar method, which ensures business isolation.
        
        Args:
            db: Database session
            db_obj: Existing model instance to update
            obj_in: Pydantic schema or dict with update data
            commit: Commit immediately; callers batching several writes pass False
            
        Returns:
            Updated model instance
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        
        db.add(db_obj)
        if commit:
            db.commit()
            db.refresh(db_obj)
        return db_obj
    
    def soft_delete(self, db: Session, *, db_obj: ModelType, deleted_at, commit: bool = True) -> ModelType:
        """
        Mark a record deleted without removing it.
        """
        db_obj.is_deleted = True
        db_obj.deleted_at = deleted_at
        db.add(db_obj)
        if commit:
            db.commit()
        return db_obj
