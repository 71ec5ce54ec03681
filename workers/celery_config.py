"""Celery configuration for transcription and analysis tasks."""

from kombu import Exchange, Queue

from core.config import settings

# Broker configuration (Redis)
broker_url = settings.celery_broker_url
result_backend = settings.celery_result_backend

# Task routing and serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = "UTC"
enable_utc = True

# Task execution settings
task_track_started = True
task_acks_late = True
task_time_limit = 10 * 60  # 10 minutes hard limit
task_soft_time_limit = 8 * 60  # 8 minutes soft limit

# Worker settings
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 500

# Queue configuration with routing
default_exchange = Exchange("bcq", type="direct")
task_default_queue = "default"
task_queues = (
    Queue("default", exchange=default_exchange, routing_key="default"),
    Queue("transcription", exchange=default_exchange, routing_key="transcription"),
    Queue("analysis", exchange=default_exchange, routing_key="analysis"),
)

task_routes = {
    "workers.tasks.bcq.transcribe_response": {"queue": "transcription", "routing_key": "transcription"},
    "workers.tasks.bcq.analyze_response": {"queue": "analysis", "routing_key": "analysis"},
}

# Result backend settings
result_expires = 3600  # Results expire after 1 hour
