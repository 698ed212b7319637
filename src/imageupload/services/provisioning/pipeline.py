"""Provisioning state machine: uploaded image to available AMI(s).

Stages run strictly in order and each asynchronous one is polled to a
terminal state:

    Import -> AwaitVolume -> Snapshot -> AwaitSnapshot -> ReleaseVolume
    -> [PublicSnapshot] -> RegisterImage -> AwaitImage
    -> [Replicate -> AwaitCopies -> PublicImages]

Any error status, missing field or exhausted retry budget raises and aborts
the run. Resources created by earlier stages are left in place.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from imageupload.core.config import settings
from imageupload.core.exceptions import ResourceStateError
from imageupload.core.progress import ProgressReporter
from imageupload.models.upload import PipelineOptions, UploadResult
from imageupload.services.provisioning.ec2 import Ec2Client, ImageState, SnapshotState
from imageupload.services.provisioning.image_set import ImageRecord, RegionImageSet

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProvisioningPipeline:
    """Drives EC2 from an uploaded manifest to published images."""

    def __init__(
        self,
        ec2: Ec2Client,
        progress: ProgressReporter | None = None,
        poll_interval: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ec2 = ec2
        self.progress = progress or ec2.transport.progress
        self.poll_interval = settings.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self._sleep = sleep

    def poll(self, check: Callable[[], Optional[T]]) -> T:
        """Call ``check`` until it returns a value, sleeping between calls.

        There is no attempt limit; ``check`` raises to abort.
        """
        while True:
            result = check()
            if result is not None:
                return result
            self._sleep(self.poll_interval)

    def discover_regions(self, region: str) -> list[str]:
        regions = self.ec2.describe_regions(region)
        logger.info("Discovered regions", extra={"region": region, "regions": regions})
        return regions

    def import_volume(self, region: str, manifest_url: str, upload: UploadResult) -> str:
        return self.ec2.import_volume(region, manifest_url, upload.size_bytes)

    def wait_for_volume(self, region: str, task_id: str) -> str:
        """Poll the conversion task until it yields a volume ID."""

        def check() -> Optional[str]:
            status = self.ec2.describe_conversion_task(region, task_id)
            if status.finished:
                return status.volume_id
            self.progress.status("Importing volume", status.message or "")
            return None

        volume_id = self.poll(check)
        self.progress.done()
        logger.info("Volume imported", extra={"region": region, "volume_id": volume_id})
        return volume_id

    def create_snapshot(self, region: str, volume_id: str) -> str:
        self.progress.say("Creating snapshot")
        return self.ec2.create_snapshot(region, volume_id)

    def wait_for_snapshot(self, region: str, snapshot_id: str) -> None:
        def check() -> Optional[bool]:
            state = self.ec2.snapshot_state(region, snapshot_id)
            if state == SnapshotState.COMPLETED:
                return True
            if state == SnapshotState.PENDING:
                self.progress.dot()
                return None
            raise ResourceStateError("DescribeSnapshots", state)

        self.poll(check)
        self.progress.done()
        logger.info("Snapshot completed", extra={"region": region, "snapshot_id": snapshot_id})

    def release_volume(self, region: str, volume_id: str) -> None:
        self.ec2.delete_volume(region, volume_id)

    def make_snapshot_public(self, region: str, snapshot_id: str) -> None:
        self.progress.say(f"Marking {snapshot_id} in {region} as public...")
        self.ec2.make_snapshot_public(region, snapshot_id)
        self.progress.done()

    def register_image(self, region: str, snapshot_id: str, options: PipelineOptions) -> str:
        # Images are usually available as soon as registration returns
        self.progress.say("Registering AMI...")
        return self.ec2.register_image(region, snapshot_id, options)

    def wait_for_image(self, region: str, image_id: str) -> None:
        def check() -> Optional[bool]:
            state = self.ec2.image_state(region, image_id)
            if state == ImageState.AVAILABLE:
                return True
            if state == ImageState.PENDING:
                self.progress.dot()
                return None
            raise ResourceStateError("DescribeImages", state)

        self.poll(check)
        self.progress.done()
        logger.info("Image available", extra={"region": region, "image_id": image_id})

    def replicate(
        self, images: RegionImageSet, home_region: str, regions: list[str]
    ) -> RegionImageSet:
        """Copy the home image to every other region, then await each copy.

        Copies are issued as a batch in region order and awaited one at a
        time in the same order.

        Returns:
            A new set holding every image in region order
        """
        source = images.get(home_region)
        ordered = RegionImageSet()
        if home_region not in regions:
            ordered.add(source)

        self.progress.say("Copying AMI to regions:")
        for region in regions:
            if region == home_region:
                ordered.add(source)
                continue
            self.progress.say(f" {region}")
            image_id = self.ec2.copy_image(home_region, source.image_id, region)
            ordered.add(
                ImageRecord(
                    region=region,
                    image_id=image_id,
                    state=ImageState.PENDING,
                    copied_from=home_region,
                )
            )
        self.progress.line(".")

        for record in ordered.pending():
            self.progress.say(f"Waiting for AMI copying to {record.region}...")
            self.wait_for_image(record.region, record.image_id)
            ordered.update_state(record.region, ImageState.AVAILABLE)

        logger.info(
            "Image replicated",
            extra={"source_region": home_region, "regions": ordered.regions()},
        )
        return ordered

    def make_images_public(self, images: RegionImageSet) -> None:
        self.progress.say("Marking images as public...")
        for record in images:
            self.ec2.make_image_public(record.region, record.image_id)
        self.progress.done()

    def run(
        self,
        options: PipelineOptions,
        upload: UploadResult,
        manifest_url: str,
        regions: list[str],
    ) -> RegionImageSet:
        """Run every stage and return the produced images.

        Args:
            options: Image metadata and publication flags
            upload: Result of the disk image upload
            manifest_url: Presigned GET URL of the manifest
            regions: Known regions, used for replication

        Returns:
            Region to image mapping; only the home region unless ``public``
        """
        region = options.region

        task_id = self.import_volume(region, manifest_url, upload)
        volume_id = self.wait_for_volume(region, task_id)

        snapshot_id = self.create_snapshot(region, volume_id)
        self.wait_for_snapshot(region, snapshot_id)
        self.release_volume(region, volume_id)

        if options.public_snapshot:
            self.make_snapshot_public(region, snapshot_id)

        image_id = self.register_image(region, snapshot_id, options)
        self.wait_for_image(region, image_id)

        images = RegionImageSet()
        images.add(ImageRecord(region=region, image_id=image_id, state=ImageState.AVAILABLE))

        if not options.public:
            return images

        images = self.replicate(images, region, regions)
        self.make_images_public(images)
        return images
