from fieldops.crud.base import CRUDBase
from .business import business
from .team import team
from .task import task
from .route import route
from .route_progress import route_progress

__all__ = ["CRUDBase", "business", "team", "task", "route", "route_progress"]
