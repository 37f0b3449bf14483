# gunicorn_conf.py

# Gunicorn config file: gunicorn -c gunicorn_conf.py flowbot.main:app

import os

# Basic configuration
bind = f"0.0.0.0:{os.getenv('PORT', '3000')}"
workers = int(os.getenv("WORKERS", "2"))
worker_class = "uvicorn.workers.UvicornWorker"

# Chat sockets stay open between turns
timeout = 120
graceful_timeout = 30

# Settings for running behind a reverse proxy like Nginx
forwarded_allow_ips = "*"

# --- Logging ---
# Send access and error logs to stdout and stderr
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
