# /flowbot/utils/metrics.py

from prometheus_client import Counter, Histogram, Gauge

# This file defines all Prometheus metrics used for application monitoring.
# Centralizing them here makes them easy to find and manage.

# Conversation Metrics
flow_turns_counter = Counter('flow_turns_total', 'Conversation turns handled by the gateway', ['event', 'outcome'])
active_connections_gauge = Gauge('active_connections', 'Number of open chat connections')
intent_requests_counter = Counter('intent_classifications_total', 'Intent classification requests', ['provider', 'status'])

# Performance Metrics
response_time_histogram = Histogram('response_time_seconds', 'Response time in seconds', ['endpoint'])
turn_duration_histogram = Histogram('flow_turn_duration_seconds', 'Time spent running one engine step', ['event'])
database_operations_counter = Counter('database_operations_total', 'Database operations', ['operation', 'status'])
