"""Per-region tracking of the images a run produces."""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from imageupload.services.provisioning.ec2 import ImageState


@dataclass
class ImageRecord:
    """An AMI in one region."""

    region: str
    image_id: str
    state: ImageState
    copied_from: Optional[str] = None  # source region for replicas


class RegionImageSet:
    """Ordered mapping of region to its image. Insertion order is report order."""

    def __init__(self):
        self._images: Dict[str, ImageRecord] = {}

    def add(self, record: ImageRecord) -> None:
        """Store an image record, replacing any earlier one for the region."""
        self._images[record.region] = record

    def get(self, region: str) -> Optional[ImageRecord]:
        return self._images.get(region)

    def update_state(self, region: str, state: ImageState) -> None:
        if region in self._images:
            self._images[region].state = state

    def regions(self) -> list[str]:
        return list(self._images)

    def pending(self) -> list[ImageRecord]:
        """Replicas still waiting to become available, in report order."""
        return [r for r in self._images.values() if r.state != ImageState.AVAILABLE]

    def as_dict(self) -> dict[str, str]:
        """Region to image ID."""
        return {region: record.image_id for region, record in self._images.items()}

    def __iter__(self) -> Iterator[ImageRecord]:
        return iter(list(self._images.values()))

    def __len__(self) -> int:
        return len(self._images)
