"""Herald service layer.

The executor performs single delivery attempts, the retry controller and
scheduler decide when attempts happen, and the notification and template
services back the public operations.  Persistence is delegated to the
repository layer.
"""

from herald.services.delivery import DeliveryExecutor, DeliveryOutcome
from herald.services.notification import NotificationService
from herald.services.pool import DeliveryWorkerPool
from herald.services.retry import RetryController, RetryTimer
from herald.services.scheduler import NotificationScheduler
from herald.services.template import TemplateService

__all__ = [
    "DeliveryExecutor",
    "DeliveryOutcome",
    "DeliveryWorkerPool",
    "NotificationScheduler",
    "NotificationService",
    "RetryController",
    "RetryTimer",
    "TemplateService",
]
