from api.src.services.github import (
    verify_signature,
    parse_webhook_payload,
    parse_pull_request_payload,
    classify_event,
)
from api.src.services.queue import (
    build_job,
    enqueue_pipeline_run,
    get_run_status,
    get_queue_length,
)

__all__ = [
    "verify_signature",
    "parse_webhook_payload",
    "parse_pull_request_payload",
    "classify_event",
    "build_job",
    "enqueue_pipeline_run",
    "get_run_status",
    "get_queue_length",
]
