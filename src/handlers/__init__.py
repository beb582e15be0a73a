"""Kopf handlers for the CloudStack cluster operator.

This package contains handlers for:
- CloudStackCluster (reconcile, delete, periodic resync)
- CloudStackMachine (control-plane load balancer membership)
"""

# Import handlers to register them with Kopf
from handlers.cluster import *  # noqa: F401, F403
from handlers.machine import *  # noqa: F401, F403
