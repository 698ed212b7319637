"""
Provisioning Service

Turns an uploaded disk image manifest into available AMIs: imports it as an
EBS volume, snapshots it, registers an image and optionally replicates and
publishes that image to every region.
"""

from imageupload.services.provisioning.ec2 import (
    ConversionState,
    ConversionStatus,
    Ec2Client,
    ImageState,
    SnapshotState,
)
from imageupload.services.provisioning.image_set import ImageRecord, RegionImageSet
from imageupload.services.provisioning.pipeline import ProvisioningPipeline

__all__ = [
    "ConversionState",
    "ConversionStatus",
    "Ec2Client",
    "ImageState",
    "SnapshotState",
    "ImageRecord",
    "RegionImageSet",
    "ProvisioningPipeline",
]
