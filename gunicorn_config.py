"""Gunicorn configuration for AC Gallery: `gunicorn -c gunicorn_config.py web:app`"""
import os
import multiprocessing

# Server socket
bind = os.getenv('GUNICORN_BIND', '0.0.0.0:5000')
backlog = 2048

# Worker processes
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() * 2 + 1))
worker_class = 'sync'
max_requests = 1000
max_requests_jitter = 50
# confirm fetches originals and writes thumbnails inside the request
timeout = 120
keepalive = 2

# Logging, access log to stdout next to the app's own console handler
accesslog = '-'
errorlog = '-'
loglevel = 'info'
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process naming
proc_name = 'acgallery'

# Development vs Production
reload = os.getenv('FLASK_ENV') == 'development'

def on_starting(server):
    server.log.info("Starting AC Gallery server")

def when_ready(server):
    server.log.info("AC Gallery server is ready. Listening on: %s", server.cfg.bind)
