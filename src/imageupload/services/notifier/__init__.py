"""
Notifier Service

Announces a finished release by publishing the per-region image list to an
SNS topic. Publication is best-effort and never fails a run.
"""

from imageupload.services.notifier.sns import (
    NotificationPublisher,
    build_message,
    region_from_topic_arn,
)

__all__ = [
    "NotificationPublisher",
    "build_message",
    "region_from_topic_arn",
]
