from datetime import date, datetime
from typing import Optional, List
from sqlalchemy.orm import Session
from fieldops.crud.base import CRUDBase
from fieldops.models.task import Task, TaskStatus
from fieldops.schemas.task import TaskCreate, TaskUpdate

# Work already under way or closed is never re-planned
NON_PLANNABLE_STATUSES = (TaskStatus.in_progress, TaskStatus.completed, TaskStatus.cancelled)


class CRUDTask(CRUDBase[Task, TaskCreate, TaskUpdate]):
    """
    CRUD operations for field tasks.
    """

    def find_eligible(
        self,
        db: Session,
        *,
        business_id: int,
        start: date,
        end: date,
        task_ids: Optional[List[int]] = None
    ) -> List[Task]:
        """
        Tasks that can be planned in the given window.
        
        Args:
            db: Database session
            business_id: Business ID for isolation
            start: First scheduled day (inclusive)
            end: Last scheduled day (inclusive)
            task_ids: Restrict to these tasks; pending status is then not required
            
        Returns:
            List of tasks ordered by id
        """
        stmt = self._scoped(business_id).where(
            Task.scheduled_date >= start,
            Task.scheduled_date <= end
        )
        if task_ids:
            stmt = stmt.where(
                Task.id.in_(task_ids),
                Task.status.not_in(NON_PLANNABLE_STATUSES)
            )
        else:
            stmt = stmt.where(Task.status == TaskStatus.pending)
        stmt = stmt.order_by(Task.id)
        return list(db.execute(stmt).scalars().all())

    def get_for_route(self, db: Session, *, route_id: int, business_id: int) -> List[Task]:
        stmt = self._scoped(business_id).where(Task.assigned_route_id == route_id).order_by(Task.id)
        return list(db.execute(stmt).scalars().all())

    def get_for_team_window(
        self,
        db: Session,
        *,
        business_id: int,
        start: date,
        end: date
    ) -> List[Task]:
        """Assigned tasks (any team) scheduled inside the window."""
        stmt = self._scoped(business_id).where(
            Task.scheduled_date >= start,
            Task.scheduled_date <= end,
            Task.assigned_team_id.is_not(None)
        )
        return list(db.execute(stmt).scalars().all())

    def update_assignment(
        self,
        db: Session,
        *,
        db_obj: Task,
        route_id: int,
        team_id: int,
        assigned_at: datetime,
        commit: bool = True
    ) -> Task:
        return self.update(
            db,
            db_obj=db_obj,
            obj_in={
                "assigned_route_id": route_id,
                "assigned_team_id": team_id,
                "assigned_at": assigned_at,
                "status": TaskStatus.assigned,
            },
            commit=commit,
        )


task = CRUDTask(Task)
