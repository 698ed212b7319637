"""Best-effort SNS announcement of newly published AMIs."""

import json
import logging
from typing import Any, Dict

from imageupload.aws.endpoints import notification_host
from imageupload.aws.transport import TransportClient
from imageupload.aws.xml import extract_first
from imageupload.core.config import settings
from imageupload.core.exceptions import ImageUploadError, NotificationError
from imageupload.models.upload import NotificationTarget
from imageupload.services.provisioning.image_set import RegionImageSet

logger = logging.getLogger(__name__)


def region_from_topic_arn(topic_arn: str) -> str:
    """Extract the region from ``arn:<partition>:sns:<region>:<account>:<topic>``.

    Raises:
        NotificationError: If the ARN is not an SNS topic ARN
    """
    fields = topic_arn.split(":")
    if len(fields) < 5 or fields[0] != "arn" or fields[2] != "sns" or not fields[3]:
        raise NotificationError(f"Not an SNS topic ARN: {topic_arn}")
    return fields[3]


def build_message(target: NotificationTarget, name: str, images: RegionImageSet) -> str:
    """Render the JSON announcement body."""
    regions: Dict[str, Any] = {
        record.region: [{"Name": name, "ImageId": record.image_id}] for record in images
    }
    message = {
        "v1": {
            "ReleaseVersion": target.release_version,
            "ImageVersion": target.image_version,
            "Regions": regions,
        }
    }
    return json.dumps(message, indent=2)


class NotificationPublisher:
    """Publishes the image list to an SNS topic."""

    def __init__(self, transport: TransportClient):
        self.transport = transport

    def publish(self, target: NotificationTarget, name: str, images: RegionImageSet) -> str:
        """Publish the announcement.

        Returns:
            The SNS message ID

        Raises:
            NotificationError: If the topic is invalid or SNS did not accept
                the message
        """
        region = region_from_topic_arn(target.topic_arn)
        params = [
            ("Action", "Publish"),
            ("Message", build_message(target, name, images)),
            ("Subject", f"New {target.release_version} AMIs"),
            ("TopicArn", target.topic_arn),
            ("Version", settings.SNS_API_VERSION),
        ]

        try:
            body = self.transport.api_call(
                "sns", region, notification_host(region), params, operation="Publish", retry=False
            )
            message_id = extract_first(body, "MessageId")
        except ImageUploadError as e:
            raise NotificationError(f"SNS API call failed: {e}") from e

        if message_id is None:
            raise NotificationError(f"SNS API call failed?\n{body}")

        logger.info(
            "Release notification published",
            extra={"topic_arn": target.topic_arn, "message_id": message_id, "regions": len(images)},
        )
        return message_id

    def try_publish(self, target: NotificationTarget, name: str, images: RegionImageSet) -> bool:
        """Publish, reporting failure instead of raising."""
        try:
            self.publish(target, name, images)
            return True
        except NotificationError as e:
            logger.error(
                "Failed to send SNS notification",
                extra={"topic_arn": target.topic_arn, "error": str(e)},
            )
            self.transport.progress.line(f"Failed to send SNS notification: {e}")
            return False
