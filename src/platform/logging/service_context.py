"""
Service context for log lines.

Identifies which service instance wrote a log line so output from several
sweeper/API replicas can be told apart.
"""

import os
from functools import lru_cache


@lru_cache(maxsize=1)
def get_service_context() -> str:
    service_name = os.getenv('SERVICE_NAME', 'inventory-service')
    deploy_env = os.getenv('DEPLOY_ENV', 'local_dev')

    # Container hostname in orchestrated deployments, PID locally
    instance_id = os.getenv('HOSTNAME', '')[:12] or str(os.getpid())

    return f'{service_name}@{deploy_env}:{instance_id}'
