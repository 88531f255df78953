from .auth import User, SessionToken
from .catalog import Store, Product
from .inventory import StockSnapshot
from .tasks import Task, RouteTask
from .routing import RouteSchedule, VisitLog

__all__ = [
    'User', 'SessionToken',
    'Store', 'Product',
    'StockSnapshot',
    'Task', 'RouteTask',
    'RouteSchedule', 'VisitLog',
]
