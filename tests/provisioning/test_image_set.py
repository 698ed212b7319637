"""Tests for the region image set."""

import pytest

from imageupload.services.provisioning.ec2 import ImageState
from imageupload.services.provisioning.image_set import ImageRecord, RegionImageSet


@pytest.fixture
def image_set():
    """Create a fresh image set for each test."""
    return RegionImageSet()


def test_add_and_get(image_set):
    record = ImageRecord(region="us-east-1", image_id="ami-1", state=ImageState.AVAILABLE)
    image_set.add(record)

    assert image_set.get("us-east-1") is record
    assert image_set.get("eu-west-1") is None
    assert len(image_set) == 1


def test_insertion_order(image_set):
    """Test iteration follows insertion order."""
    for region in ["eu-west-1", "us-east-1", "ap-south-1"]:
        image_set.add(ImageRecord(region=region, image_id=f"ami-{region}", state=ImageState.PENDING))

    assert image_set.regions() == ["eu-west-1", "us-east-1", "ap-south-1"]
    assert [r.image_id for r in image_set] == ["ami-eu-west-1", "ami-us-east-1", "ami-ap-south-1"]


def test_replace_keeps_position(image_set):
    image_set.add(ImageRecord(region="a", image_id="ami-1", state=ImageState.PENDING))
    image_set.add(ImageRecord(region="b", image_id="ami-2", state=ImageState.PENDING))
    image_set.add(ImageRecord(region="a", image_id="ami-3", state=ImageState.AVAILABLE))

    assert image_set.as_dict() == {"a": "ami-3", "b": "ami-2"}


def test_pending_and_update_state(image_set):
    image_set.add(ImageRecord(region="a", image_id="ami-1", state=ImageState.AVAILABLE))
    image_set.add(ImageRecord(region="b", image_id="ami-2", state=ImageState.PENDING, copied_from="a"))

    assert [r.region for r in image_set.pending()] == ["b"]

    image_set.update_state("b", ImageState.AVAILABLE)
    image_set.update_state("missing", ImageState.AVAILABLE)

    assert image_set.pending() == []
    assert image_set.get("b").state == ImageState.AVAILABLE


def test_empty_set(image_set):
    assert len(image_set) == 0
    assert list(image_set) == []
    assert image_set.as_dict() == {}
