"""
Gunicorn configuration for ChapterHub.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# The background scheduler lives in one process; keep the worker count small
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
timeout = 120  # Batch recalculation can be slow on large chapters
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'chapterhub'

# Load the app (and start the scheduler) once in the master
preload_app = True

graceful_timeout = 30


def on_starting(server):
    print("[Gunicorn] Starting ChapterHub server...")


def on_exit(server):
    print("[Gunicorn] ChapterHub server shutting down...")
