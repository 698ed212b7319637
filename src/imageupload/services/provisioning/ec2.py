"""EC2 Query API calls used to turn an uploaded image into an AMI."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from imageupload.aws.endpoints import compute_host
from imageupload.aws.transport import TransportClient
from imageupload.aws.xml import extract_all, extract_first, require
from imageupload.core.config import settings
from imageupload.core.exceptions import MissingFieldError, ResourceStateError
from imageupload.models.upload import PipelineOptions
from imageupload.storage.manifest import volume_size_gib

logger = logging.getLogger(__name__)

ROOT_DEVICE = "/dev/sda1"
EPHEMERAL_DEVICES = ["/dev/sdb", "/dev/sdc", "/dev/sdd", "/dev/sde"]
RETURN_TRUE = "<return>true</return>"


class ConversionState(str, Enum):
    """Conversion task states reported by DescribeConversionTasks."""

    ACTIVE = "active"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"


class SnapshotState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"


class ImageState(str, Enum):
    PENDING = "pending"
    AVAILABLE = "available"
    FAILED = "failed"
    ERROR = "error"


ACTIVE_MARKER = f"<state>{ConversionState.ACTIVE.value}</state>"
CONVERSION_ERROR_STATES = {ConversionState.CANCELLING.value, ConversionState.CANCELLED.value}


@dataclass(frozen=True)
class ConversionStatus:
    """One observation of an import conversion task."""

    volume_id: str | None
    message: str | None = None
    state: str | None = None

    @property
    def finished(self) -> bool:
        return self.volume_id is not None


class Ec2Client:
    """Thin wrapper mapping each EC2 action to a signed Query API call."""

    def __init__(self, transport: TransportClient):
        self.transport = transport

    def call(
        self,
        region: str,
        action: str,
        params: Iterable[tuple[str, str]] = (),
        retry: bool = True,
        version: str | None = None,
    ) -> str:
        form = [("Action", action), *params, ("Version", version or settings.EC2_API_VERSION)]
        return self.transport.api_call(
            "ec2", region, compute_host(region), form, operation=action, retry=retry
        )

    def describe_regions(self, region: str) -> list[str]:
        """List every region visible to the account."""
        body = self.call(region, "DescribeRegions")
        region_info = require(body, "regionInfo", "DescribeRegions")
        regions = extract_all(region_info, "regionName")
        if not regions:
            raise MissingFieldError("DescribeRegions", "regionName", body)
        return regions

    def import_volume(self, region: str, manifest_url: str, size_bytes: int) -> str:
        """Start converting the uploaded image into an EBS volume.

        Returns:
            Conversion task ID
        """
        body = self.call(
            region,
            "ImportVolume",
            [
                ("AvailabilityZone", f"{region}a"),
                ("Image.Format", "RAW"),
                ("Image.Bytes", str(size_bytes)),
                ("Image.ImportManifestUrl", manifest_url),
                ("Volume.Size", str(volume_size_gib(size_bytes))),
            ],
            retry=False,
        )
        task_id = require(body, "conversionTaskId", "ImportVolume")
        logger.info(
            "Volume import started",
            extra={"region": region, "conversion_task_id": task_id, "size_bytes": size_bytes},
        )
        return task_id

    def describe_conversion_task(self, region: str, task_id: str) -> ConversionStatus:
        """Observe an import task.

        The task is finished once its state is no longer active and the
        response carries the new volume's ID. Cancellation is fatal.
        """
        body = self.call(region, "DescribeConversionTasks", [("ConversionTaskId.1", task_id)])
        state = extract_first(body, "state")

        if ACTIVE_MARKER not in body:
            if state in CONVERSION_ERROR_STATES:
                message = extract_first(body, "statusMessage")
                raise ResourceStateError(
                    "DescribeConversionTasks",
                    f"{state}: {message}" if message else state,
                    body,
                )
            volume = extract_first(body, "volume")
            volume_id = extract_first(volume if volume is not None else body, "id")
            if volume_id:
                return ConversionStatus(volume_id=volume_id, state=state)

        message = require(body, "statusMessage", "DescribeConversionTasks")
        return ConversionStatus(volume_id=None, message=message, state=state)

    def create_snapshot(self, region: str, volume_id: str) -> str:
        body = self.call(region, "CreateSnapshot", [("VolumeId", volume_id)], retry=False)
        return require(body, "snapshotId", "CreateSnapshot")

    def snapshot_state(self, region: str, snapshot_id: str) -> str:
        body = self.call(region, "DescribeSnapshots", [("SnapshotId.1", snapshot_id)])
        return require(body, "status", "DescribeSnapshots")

    def delete_volume(self, region: str, volume_id: str) -> None:
        body = self.call(region, "DeleteVolume", [("VolumeId", volume_id)], retry=False)
        self._require_true("DeleteVolume", body)

    def make_snapshot_public(self, region: str, snapshot_id: str) -> None:
        body = self.call(
            region,
            "ModifySnapshotAttribute",
            [("SnapshotId", snapshot_id), ("CreateVolumePermission.Add.1.Group", "all")],
        )
        self._require_true("ModifySnapshotAttribute", body)

    def register_image(self, region: str, snapshot_id: str, options: PipelineOptions) -> str:
        """Register an HVM AMI booting from the snapshot.

        The root device comes from the snapshot; four instance-store slots
        are mapped after it.

        Returns:
            Image ID
        """
        params = [
            ("Name", options.name),
            ("Description", options.description),
            ("Architecture", options.architecture),
            ("RootDeviceName", ROOT_DEVICE),
            ("VirtualizationType", "hvm"),
        ]
        if options.sriov:
            params.append(("SriovNetSupport", "simple"))
        if options.ena:
            params.append(("EnaSupport", "true"))
        params += [
            ("BlockDeviceMapping.1.DeviceName", ROOT_DEVICE),
            ("BlockDeviceMapping.1.Ebs.SnapshotId", snapshot_id),
            ("BlockDeviceMapping.1.Ebs.VolumeType", "gp2"),
            ("BlockDeviceMapping.1.Ebs.VolumeSize", str(settings.ROOT_VOLUME_SIZE_GB)),
        ]
        for slot, device in enumerate(EPHEMERAL_DEVICES):
            params += [
                (f"BlockDeviceMapping.{slot + 2}.DeviceName", device),
                (f"BlockDeviceMapping.{slot + 2}.VirtualName", f"ephemeral{slot}"),
            ]

        body = self.call(
            region,
            "RegisterImage",
            params,
            retry=False,
            version=settings.EC2_REGISTER_API_VERSION,
        )
        return require(body, "imageId", "RegisterImage")

    def image_state(self, region: str, image_id: str) -> str:
        body = self.call(region, "DescribeImages", [("ImageId.1", image_id)])
        return require(body, "imageState", "DescribeImages")

    def copy_image(self, source_region: str, image_id: str, target_region: str) -> str:
        """Start copying an AMI into ``target_region``; returns the new image ID."""
        body = self.call(
            target_region,
            "CopyImage",
            [("SourceRegion", source_region), ("SourceImageId", image_id)],
            retry=False,
        )
        return require(body, "imageId", "CopyImage")

    def make_image_public(self, region: str, image_id: str) -> None:
        body = self.call(
            region,
            "ModifyImageAttribute",
            [("ImageId", image_id), ("LaunchPermission.Add.1.Group", "all")],
        )
        self._require_true("ModifyImageAttribute", body)

    @staticmethod
    def _require_true(operation: str, body: str) -> None:
        if RETURN_TRUE not in body:
            result = extract_first(body, "return")
            raise ResourceStateError(operation, result or "no <return> value", body)
