"""Command-line entry point: upload a raw disk image and turn it into AMIs."""

import argparse
import logging
import sys
import time
from typing import Callable, NoReturn, Optional, Sequence

from imageupload.aws.signer import RequestSigner
from imageupload.aws.transport import TransportClient
from imageupload.core.config import settings
from imageupload.core.credentials import load_credentials
from imageupload.core.exceptions import ImageUploadError
from imageupload.core.logging import setup_logging
from imageupload.core.progress import ProgressReporter
from imageupload.models.upload import NotificationTarget, PipelineOptions
from imageupload.services.notifier.sns import NotificationPublisher
from imageupload.services.provisioning.ec2 import Ec2Client
from imageupload.services.provisioning.image_set import RegionImageSet
from imageupload.services.provisioning.pipeline import ProvisioningPipeline
from imageupload.storage.s3 import UploadManager

logger = logging.getLogger(__name__)

OPERANDS = ["disk image", "name", "description", "region", "bucket", "credential file"]
NOTIFICATION_OPERANDS = ["topic-arn", "release-version", "image-version"]
USAGE = (
    "%(prog)s [--public] [--publicsnap] [--sriov] [--ena] [--arm64] "
    + " ".join(f"<{name}>" for name in OPERANDS)
    + " ["
    + " ".join(f"<{name}>" for name in NOTIFICATION_OPERANDS)
    + "]"
)


class UsageParser(argparse.ArgumentParser):
    """Argument parser that exits with status 1 on usage errors."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> UsageParser:
    parser = UsageParser(
        prog=settings.SERVICE_NAME,
        usage=USAGE,
        description="Upload a raw disk image to S3 and register it as an EC2 AMI.",
    )
    parser.add_argument("--public", action="store_true",
                        help="copy the AMI to every region and make all copies public")
    parser.add_argument("--publicsnap", dest="public_snapshot", action="store_true",
                        help="make the EBS snapshot public")
    parser.add_argument("--sriov", action="store_true", help="register with SriovNetSupport")
    parser.add_argument("--ena", action="store_true", help="register with EnaSupport")
    parser.add_argument("--arm64", action="store_true", help="register an arm64 image")
    return parser


def split_operands(argv: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split the command line into leading flags and operands.

    Flags are only recognized before the first operand; anything after it,
    flags included, is an operand. A "--" ends the flags.
    """
    argv = list(argv)
    for index, arg in enumerate(argv):
        if arg == "--":
            return argv[:index], argv[index + 1:]
        if not arg.startswith("-") or arg == "-":
            return argv[:index], argv[index:]
    return argv, []


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse and validate the command line.

    Exits with status 1 unless exactly six or nine operands follow the flags.
    """
    parser = build_parser()
    flags, operands = split_operands(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(flags)

    if len(operands) not in (len(OPERANDS), len(OPERANDS) + len(NOTIFICATION_OPERANDS)):
        parser.error(f"expected 6 or 9 operands, got {len(operands)}")

    (args.image, args.name, args.description,
     args.region, args.bucket, args.key_file) = operands[:len(OPERANDS)]

    args.notification = None
    if len(operands) > len(OPERANDS):
        topic_arn, release_version, image_version = operands[len(OPERANDS):]
        args.notification = NotificationTarget(
            topic_arn=topic_arn,
            release_version=release_version,
            image_version=image_version,
        )

    args.options = PipelineOptions(
        name=args.name,
        description=args.description,
        region=args.region,
        bucket=args.bucket,
        architecture="arm64" if args.arm64 else "x86_64",
        public=args.public,
        public_snapshot=args.public_snapshot,
        sriov=args.sriov,
        ena=args.ena,
    )
    return args


def run(
    args: argparse.Namespace,
    transport: TransportClient,
    sleep: Callable[[float], None] = time.sleep,
) -> RegionImageSet:
    """Upload the image, provision the AMI(s) and announce them.

    Regions are listed before the upload so bad credentials fail before any
    data is sent.
    """
    options: PipelineOptions = args.options
    ec2 = Ec2Client(transport)
    pipeline = ProvisioningPipeline(ec2, sleep=sleep)

    regions = pipeline.discover_regions(options.region)

    uploader = UploadManager(transport, options.region, options.bucket)
    upload = uploader.upload(args.image)
    manifest_url = uploader.presigned_url("GET", upload.manifest_path)

    images = pipeline.run(options, upload, manifest_url, regions)

    for record in images:
        print(f"Created AMI in {record.region} region: {record.image_id}")
    sys.stdout.flush()

    if args.notification is not None and options.public:
        NotificationPublisher(transport).try_publish(args.notification, options.name, images)

    return images


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the tool; returns the process exit status."""
    args = parse_args(argv)
    setup_logging()

    progress = ProgressReporter()
    try:
        credentials = load_credentials(args.key_file)
        with TransportClient(RequestSigner(credentials), progress=progress) as transport:
            images = run(args, transport)
    except ImageUploadError as e:
        logger.error(
            "Image upload failed",
            extra={"error_type": type(e).__name__, "image": args.image, "region": args.region},
        )
        progress.line(str(e))
        return 1

    logger.info("Image upload finished", extra={"images": images.as_dict()})
    return 0


if __name__ == "__main__":
    sys.exit(main())
