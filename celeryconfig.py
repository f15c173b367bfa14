"""
Celery configuration module.

See `the celery docs
<http://docs.celeryproject.org/en/latest/userguide/configuration.html>`_.
"""

import os

REDIS_ENDPOINT = os.environ.get('REDIS_ENDPOINT', 'localhost:6379')
broker_url = "redis://%s/0" % REDIS_ENDPOINT
result_backend = "redis://%s/0" % REDIS_ENDPOINT
task_default_queue = 'gctracker-worker'
worker_prefetch_multiplier = 1
task_acks_late = True
