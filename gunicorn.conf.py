"""
Gunicorn configuration: Uvicorn workers serving resalebooks.main:app.
"""

import multiprocessing
import os

bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 10000
max_requests_jitter = 1000
timeout = 120
keepalive = 5
graceful_timeout = 30

proc_name = "resalebooks-api"

errorlog = "-"
accesslog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
