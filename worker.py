"""Initialize the Celery application, with the periodic status sync."""

from gctracker.app_logging import setup_logger
from gctracker.factory import create_worker_app, celery_app

app = create_worker_app()
setup_logger(app.config['LOGLEVEL'])
app.app_context().push()
