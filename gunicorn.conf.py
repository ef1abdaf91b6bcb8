"""
Gunicorn configuration for the auth service and the gateway.

Select the app on the command line, e.g.
    gunicorn -c gunicorn.conf.py jobboard.main:app
    GUNICORN_PORT=5000 gunicorn -c gunicorn.conf.py jobboard.gateway.main:app
"""
import os

# Server socket
bind = f"0.0.0.0:{os.getenv('GUNICORN_PORT', os.getenv('AUTH_SERVICE_PORT', '5001'))}"
backlog = 2048

# Worker processes
# Each worker is an independent event loop with its own MongoDB pool and
# rate-limit counters
workers = int(os.getenv("GUNICORN_WORKERS", 2))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 100

# Worker lifecycle
max_requests = 1000  # Restart worker after 1000 requests (prevent memory leaks)
max_requests_jitter = 100  # Add randomness to prevent all workers restarting at once

# Timeouts
# Must exceed GATEWAY_PROXY_TIMEOUT so the gateway can answer 502 itself
timeout = int(os.getenv("GUNICORN_TIMEOUT", 35))
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = os.getenv("GUNICORN_PROC_NAME", "jobboard")

# Server mechanics
daemon = False  # Don't run as daemon (Docker handles this)
pidfile = None
umask = 0
user = None
group = None
tmp_upload_dir = None

# Logging
accesslog = "-"  # Log to stdout
errorlog = "-"   # Log to stderr
loglevel = os.getenv("LOG_LEVEL", "info").lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'


# Server hooks
def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info("Starting Gunicorn server")


def when_ready(server):
    """Called just after the server is started."""
    server.log.info("Gunicorn server is ready. Spawning workers")


def worker_int(worker):
    """Called when a worker receives the SIGINT or SIGQUIT signal."""
    worker.log.info("Worker received INT or QUIT signal")
