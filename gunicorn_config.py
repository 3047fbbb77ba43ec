# Server Socket
bind = "127.0.0.1:8000"  # NGINX proxies requests from the scanners

# Worker Settings
# Check-ins from many scanners are serialized by the database, so plain
# threaded workers are enough.
workers = 4
threads = 4
worker_class = "gthread"

# Timeouts
timeout = 30  # Longer than DB_TIMEOUT so storage timeouts are reported, not killed
graceful_timeout = 30
keepalive = 5
max_requests = 1000
max_requests_jitter = 50

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"

# Process Name
proc_name = "event_checkin"

wsgi_app = "app:app"
