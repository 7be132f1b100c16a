from .business import Business
from .team import Team
from .task import Task
from .route import Route, RouteStop
from .route_progress import RouteProgress, RouteProgressTask
