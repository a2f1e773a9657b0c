# Gunicorn configuration: gunicorn -c gunicorn_config.py main:app
import os

# Worker configuration
bind = os.environ.get("BIND", "0.0.0.0:5000")
workers = int(os.environ.get("WEB_CONCURRENCY", "2"))
worker_class = "sync"
max_requests = 500          # Recycle workers to bound memory growth
max_requests_jitter = 50    # Stagger recycling across workers

# Timeout settings - photo uploads and imports on slow mobile links
timeout = 120
keepalive = 5
graceful_timeout = 30

# Logging
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
capture_output = True

preload_app = False         # Each worker builds its own app and scheduler check
