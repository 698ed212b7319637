"""Multipart upload of a disk image to S3 for EC2 import."""

import logging
import secrets
from pathlib import Path
from typing import BinaryIO, Callable

from imageupload.aws.endpoints import bucket_host, object_url
from imageupload.aws.transport import TransportClient
from imageupload.core.config import settings
from imageupload.core.exceptions import DiskImageError
from imageupload.core.progress import ProgressReporter
from imageupload.models.upload import UploadResult
from imageupload.storage.manifest import ManifestBuilder, Part, UploadManifest, plan_parts

logger = logging.getLogger(__name__)

NONCE_BYTES = 16


def random_nonce() -> str:
    """Per-upload key prefix so concurrent uploads never collide."""
    return secrets.token_bytes(NONCE_BYTES).hex()


class UploadManager:
    """Uploads a disk image as fixed-size parts plus an import manifest."""

    def __init__(
        self,
        transport: TransportClient,
        region: str,
        bucket: str,
        part_size: int | None = None,
        expires: int | None = None,
        progress: ProgressReporter | None = None,
        nonce_factory: Callable[[], str] = random_nonce,
    ):
        self.transport = transport
        self.region = region
        self.bucket = bucket
        self.part_size = part_size or settings.part_size_bytes
        self.expires = expires or settings.PRESIGN_EXPIRES_SECONDS
        self.progress = progress or transport.progress
        self._nonce_factory = nonce_factory

    def presigned_url(self, method: str, path: str) -> str:
        """Full HTTPS URL granting ``method`` on ``path`` until expiry."""
        query = self.transport.signer.presign_query(
            self.region, "s3", method, bucket_host(self.bucket), path, self.expires
        )
        return object_url(self.bucket, path, query)

    def upload(self, image_path: str | Path) -> UploadResult:
        """Upload the disk image at ``image_path``.

        Returns:
            Manifest path and image size

        Raises:
            DiskImageError: If the image is empty or cannot be read
            RemoteCallError: If a PUT fails on every attempt
        """
        image_path = Path(image_path)
        try:
            with open(image_path, "rb") as f:
                size = image_path.stat().st_size
                if size == 0:
                    raise DiskImageError(f"Disk image is empty: {image_path}")
                manifest_path, _ = self.upload_stream(f, size, label=str(image_path))
        except OSError as e:
            raise DiskImageError(f"Cannot read disk image {image_path}: {e}") from e

        return UploadResult(manifest_path=manifest_path, size_bytes=size)

    def upload_stream(
        self, stream: BinaryIO, size: int, label: str = "<stream>"
    ) -> tuple[str, UploadManifest]:
        """Upload ``size`` bytes from ``stream`` and then the manifest.

        Returns:
            Tuple of (manifest_path, manifest)
        """
        nonce = self._nonce_factory()
        manifest_path = f"/{nonce}/manifest.xml"
        parts = plan_parts(size, self.part_size)

        builder = ManifestBuilder(
            size=size,
            part_size=self.part_size,
            self_destruct_url=self.presigned_url("DELETE", manifest_path),
            importer_name=settings.SERVICE_NAME,
            importer_version=settings.SERVICE_VERSION,
            importer_release=settings.SERVICE_RELEASE,
        )

        logger.info(
            "Uploading disk image",
            extra={"image": label, "bucket": self.bucket, "nonce": nonce, "parts": len(parts)},
        )
        self.progress.say(
            f"Uploading {label} to\nhttps://{bucket_host(self.bucket)}/{nonce}/\n"
            f"in {len(parts)} part(s)"
        )

        for part_range in parts:
            self.progress.dot()

            data = stream.read(part_range.length)
            if len(data) != part_range.length:
                raise DiskImageError(
                    f"Error reading {label}: expected {part_range.length} bytes "
                    f"at offset {part_range.start}, got {len(data)}"
                )

            key = f"{nonce}/part{part_range.index}"
            path = f"/{key}"
            self.transport.put_object(self.region, self.bucket, path, data)

            builder.add_part(
                Part(
                    range=part_range,
                    key=key,
                    head_url=self.presigned_url("HEAD", path),
                    get_url=self.presigned_url("GET", path),
                    delete_url=self.presigned_url("DELETE", path),
                )
            )

        self.progress.done()

        manifest = builder.export()

        self.progress.say("Uploading volume manifest...")
        self.transport.put_object(self.region, self.bucket, manifest_path, manifest.document)
        self.progress.done()

        logger.info(
            "Disk image uploaded",
            extra={"manifest_path": manifest_path, "size_bytes": size},
        )
        return manifest_path, manifest
