# Gunicorn configuration file
import os

# Bind to the port provided by the host
bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"

# Roster uploads are parsed inside the request
timeout = 60

# Graceful timeout for worker shutdown
graceful_timeout = 30

# One worker: the planner store keeps the active plan in process memory
workers = 1

# Worker class
worker_class = "sync"

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"


def worker_exit(server, worker):
    """Write the planner state before the worker goes away."""
    from app import app, flush_store
    flush_store(app)
