"""Run configuration and result models."""

from typing import Literal

from pydantic import BaseModel, Field


class UploadResult(BaseModel):
    """Where the uploaded image's manifest lives."""

    manifest_path: str = Field(..., description="Manifest object path, e.g. /<nonce>/manifest.xml")
    size_bytes: int = Field(..., description="Disk image size in bytes")


class PipelineOptions(BaseModel):
    """What to build and how to publish it."""

    name: str = Field(..., description="AMI name")
    description: str = Field(..., description="AMI description")
    region: str = Field(..., description="Home region the image is built in")
    bucket: str = Field(..., description="S3 bucket for the upload")
    architecture: Literal["x86_64", "arm64"] = "x86_64"
    public: bool = Field(False, description="Copy to every region and grant public launch")
    public_snapshot: bool = Field(False, description="Grant public volume creation on the snapshot")
    sriov: bool = Field(False, description="Register with SriovNetSupport=simple")
    ena: bool = Field(False, description="Register with EnaSupport=true")


class NotificationTarget(BaseModel):
    """SNS topic and version strings for the release announcement."""

    topic_arn: str
    release_version: str
    image_version: str
