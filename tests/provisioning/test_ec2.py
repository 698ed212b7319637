"""Tests for the EC2 Query API client."""

import pytest

from imageupload.core.exceptions import MissingFieldError, RequestFailedError, ResourceStateError
from imageupload.models.upload import PipelineOptions
from imageupload.services.provisioning.ec2 import Ec2Client

ACTIVE = (
    "<conversionTasks><item><state>active</state>"
    "<statusMessage>Pending</statusMessage></item></conversionTasks>"
)
COMPLETED = (
    "<conversionTasks><item><importVolume><volume><size>1</size><id>vol-123</id></volume>"
    "</importVolume><state>completed</state></item></conversionTasks>"
)


@pytest.fixture
def ec2(aws_transport):
    return Ec2Client(aws_transport)


@pytest.fixture
def options():
    return PipelineOptions(
        name="FreeBSD 14.1",
        description="FreeBSD/amd64 14.1-RELEASE",
        region="us-east-1",
        bucket="images",
    )


def test_call_adds_action_and_version(ec2, fake_aws):
    fake_aws.queue("DescribeImages", "<imageState>available</imageState>")

    assert ec2.image_state("eu-west-1", "ami-1") == "available"

    request = fake_aws.requests[0]
    assert request.url.host == "ec2.eu-west-1.amazonaws.com"
    assert request.content == b"Action=DescribeImages&ImageId.1=ami-1&Version=2014-09-01"


def test_describe_regions(ec2, fake_aws):
    fake_aws.queue(
        "DescribeRegions",
        "<regionInfo><item><regionName>eu-north-1</regionName></item>"
        "<item><regionName>us-east-1</regionName></item></regionInfo>",
    )

    assert ec2.describe_regions("us-east-1") == ["eu-north-1", "us-east-1"]


@pytest.mark.parametrize("body", ["<Response/>", "<regionInfo></regionInfo>"])
def test_describe_regions_requires_regions(ec2, fake_aws, body):
    fake_aws.queue("DescribeRegions", body)

    with pytest.raises(MissingFieldError):
        ec2.describe_regions("us-east-1")


def test_import_volume(ec2, fake_aws):
    fake_aws.queue("ImportVolume", "<conversionTaskId>import-vol-1</conversionTaskId>")

    task_id = ec2.import_volume("eu-west-1", "https://b.s3.amazonaws.com/m?a=1&b=2", 1 << 30)

    assert task_id == "import-vol-1"
    form = fake_aws.forms("ImportVolume")[0]
    assert form["AvailabilityZone"] == "eu-west-1a"
    assert form["Image.Format"] == "RAW"
    assert form["Image.Bytes"] == str(1 << 30)
    assert form["Image.ImportManifestUrl"] == "https://b.s3.amazonaws.com/m?a=1&b=2"
    assert form["Volume.Size"] == "1"
    assert b"Image.ImportManifestUrl=https%3A%2F%2Fb.s3.amazonaws.com%2Fm%3Fa%3D1%26b%3D2" in (
        fake_aws.requests[0].content
    )


def test_import_volume_is_single_attempt(ec2, fake_aws):
    fake_aws.queue("ImportVolume", "<Error/>", "<Error/>", status=500)

    with pytest.raises(RequestFailedError):
        ec2.import_volume("eu-west-1", "https://m", 1)

    assert fake_aws.actions == ["ImportVolume"]


def test_import_volume_missing_task_id(ec2, fake_aws):
    fake_aws.queue("ImportVolume", "<ImportVolumeResponse/>")

    with pytest.raises(MissingFieldError):
        ec2.import_volume("eu-west-1", "https://m", 1)


class TestDescribeConversionTask:
    """Tests for reading conversion task status."""

    def test_active(self, ec2, fake_aws):
        fake_aws.queue("DescribeConversionTasks", ACTIVE)

        status = ec2.describe_conversion_task("us-east-1", "import-vol-1")

        assert not status.finished
        assert status.message == "Pending"
        assert fake_aws.forms("DescribeConversionTasks")[0]["ConversionTaskId.1"] == "import-vol-1"

    def test_completed(self, ec2, fake_aws):
        fake_aws.queue("DescribeConversionTasks", COMPLETED)

        status = ec2.describe_conversion_task("us-east-1", "import-vol-1")

        assert status.finished
        assert status.volume_id == "vol-123"

    def test_id_without_volume_element(self, ec2, fake_aws):
        fake_aws.queue("DescribeConversionTasks", "<state>completed</state><id>vol-9</id>")

        assert ec2.describe_conversion_task("us-east-1", "t").volume_id == "vol-9"

    @pytest.mark.parametrize("state", ["cancelling", "cancelled"])
    def test_cancelled_is_fatal(self, ec2, fake_aws, state):
        fake_aws.queue(
            "DescribeConversionTasks",
            f"<state>{state}</state><statusMessage>User cancelled</statusMessage>",
        )

        with pytest.raises(ResourceStateError, match=f"{state}: User cancelled"):
            ec2.describe_conversion_task("us-east-1", "t")

    def test_active_without_message(self, ec2, fake_aws):
        fake_aws.queue("DescribeConversionTasks", "<state>active</state>")

        with pytest.raises(MissingFieldError):
            ec2.describe_conversion_task("us-east-1", "t")


def test_create_snapshot(ec2, fake_aws):
    fake_aws.queue("CreateSnapshot", "<snapshotId>snap-1</snapshotId>")

    assert ec2.create_snapshot("us-east-1", "vol-1") == "snap-1"
    assert fake_aws.forms("CreateSnapshot")[0]["VolumeId"] == "vol-1"


def test_delete_volume_requires_true(ec2, fake_aws):
    fake_aws.queue("DeleteVolume", "<return>false</return>")

    with pytest.raises(ResourceStateError, match="Bad status from DeleteVolume: false"):
        ec2.delete_volume("us-east-1", "vol-1")


def test_make_snapshot_public(ec2, fake_aws):
    fake_aws.queue("ModifySnapshotAttribute", "<return>true</return>")

    ec2.make_snapshot_public("us-east-1", "snap-1")

    form = fake_aws.forms("ModifySnapshotAttribute")[0]
    assert form["SnapshotId"] == "snap-1"
    assert form["CreateVolumePermission.Add.1.Group"] == "all"


def test_make_image_public(ec2, fake_aws):
    fake_aws.queue("ModifyImageAttribute", "<return>true</return>")

    ec2.make_image_public("eu-west-1", "ami-2")

    form = fake_aws.forms("ModifyImageAttribute")[0]
    assert form["ImageId"] == "ami-2"
    assert form["LaunchPermission.Add.1.Group"] == "all"


class TestRegisterImage:
    """Tests for AMI registration parameters."""

    def test_parameters(self, ec2, fake_aws, options):
        fake_aws.queue("RegisterImage", "<imageId>ami-1</imageId>")

        assert ec2.register_image("us-east-1", "snap-1", options) == "ami-1"

        form = fake_aws.forms("RegisterImage")[0]
        assert form["Name"] == "FreeBSD 14.1"
        assert form["Description"] == "FreeBSD/amd64 14.1-RELEASE"
        assert form["Architecture"] == "x86_64"
        assert form["RootDeviceName"] == "/dev/sda1"
        assert form["VirtualizationType"] == "hvm"
        assert form["BlockDeviceMapping.1.DeviceName"] == "/dev/sda1"
        assert form["BlockDeviceMapping.1.Ebs.SnapshotId"] == "snap-1"
        assert form["BlockDeviceMapping.1.Ebs.VolumeType"] == "gp2"
        assert form["BlockDeviceMapping.1.Ebs.VolumeSize"] == "10"
        assert form["BlockDeviceMapping.2.DeviceName"] == "/dev/sdb"
        assert form["BlockDeviceMapping.5.DeviceName"] == "/dev/sde"
        assert form["BlockDeviceMapping.5.VirtualName"] == "ephemeral3"
        assert form["Version"] == "2016-11-15"
        assert "SriovNetSupport" not in form
        assert "EnaSupport" not in form

    def test_network_flags_and_arm64(self, ec2, fake_aws, options):
        fake_aws.queue("RegisterImage", "<imageId>ami-1</imageId>")
        options = options.model_copy(update={"sriov": True, "ena": True, "architecture": "arm64"})

        ec2.register_image("us-east-1", "snap-1", options)

        form = fake_aws.forms("RegisterImage")[0]
        assert form["SriovNetSupport"] == "simple"
        assert form["EnaSupport"] == "true"
        assert form["Architecture"] == "arm64"

    def test_description_is_encoded(self, ec2, fake_aws, options):
        fake_aws.queue("RegisterImage", "<imageId>ami-1</imageId>")

        ec2.register_image("us-east-1", "snap-1", options)

        assert b"Description=FreeBSD%2Famd64%2014.1-RELEASE" in fake_aws.requests[0].content


def test_copy_image_signed_for_target(ec2, fake_aws):
    fake_aws.queue("CopyImage", "<imageId>ami-2</imageId>")

    assert ec2.copy_image("us-east-1", "ami-1", "eu-west-1") == "ami-2"

    request = fake_aws.requests[0]
    assert request.url.host == "ec2.eu-west-1.amazonaws.com"
    assert "/eu-west-1/ec2/aws4_request" in request.headers["authorization"]
    form = fake_aws.forms("CopyImage")[0]
    assert form["SourceRegion"] == "us-east-1"
    assert form["SourceImageId"] == "ami-1"
