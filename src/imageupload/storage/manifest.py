"""Import manifest for a disk image uploaded to S3 in parts.

The manifest is the XML document EC2 ImportVolume reads to find, fetch and
finally delete the parts of an uploaded image. Every URL in it is presigned,
so EC2 needs no access to the bucket beyond those URLs.
"""

from dataclasses import dataclass

from imageupload.aws.encoding import encode_amp

MANIFEST_VERSION = "2010-11-15"
FILE_FORMAT = "RAW"
GIB = 1 << 30


@dataclass(frozen=True)
class PartRange:
    """Byte range of one part; ``end`` is inclusive."""

    index: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


def part_count(size: int, part_size: int) -> int:
    return (size + part_size - 1) // part_size


def plan_parts(size: int, part_size: int) -> list[PartRange]:
    """Split ``size`` bytes into contiguous ranges of at most ``part_size``."""
    if part_size <= 0:
        raise ValueError(f"part_size must be positive, got {part_size}")
    return [
        PartRange(index=i, start=start, end=min(start + part_size, size) - 1)
        for i, start in enumerate(range(0, size, part_size))
    ]


def volume_size_gib(size: int) -> int:
    """Smallest whole number of GiB that holds ``size`` bytes."""
    return (size + GIB - 1) // GIB


@dataclass(frozen=True)
class Part:
    """An uploaded part and the presigned URLs EC2 uses to reach it."""

    range: PartRange
    key: str
    head_url: str
    get_url: str
    delete_url: str


@dataclass(frozen=True)
class UploadManifest:
    """The exported, immutable manifest."""

    parts: tuple[Part, ...]
    self_destruct_url: str
    size: int
    volume_size_gib: int
    document: bytes


class ManifestBuilder:
    """Append-only builder for the manifest document.

    The header is written on construction, one block per ``add_part`` call,
    and the footer on ``export``. Once exported the builder accepts no more
    parts.
    """

    def __init__(
        self,
        size: int,
        part_size: int,
        self_destruct_url: str,
        importer_name: str,
        importer_version: str,
        importer_release: str,
    ):
        self.size = size
        self.expected_parts = part_count(size, part_size)
        self.self_destruct_url = self_destruct_url
        self._parts: list[Part] = []
        self._next_start = 0
        self._exported = False
        self._chunks: list[str] = [
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            "<manifest>"
            f"<version>{MANIFEST_VERSION}</version>"
            f"<file-format>{FILE_FORMAT}</file-format>"
            "<importer>"
            f"<name>{importer_name}</name>"
            f"<version>{importer_version}</version>"
            f"<release>{importer_release}</release>"
            "</importer>"
            f"<self-destruct-url>{encode_amp(self_destruct_url)}</self-destruct-url>"
            "<import>"
            f"<size>{size}</size>"
            f"<volume-size>{volume_size_gib(size)}</volume-size>"
            f'<parts count="{self.expected_parts}">'
        ]

    @property
    def parts(self) -> tuple[Part, ...]:
        return tuple(self._parts)

    def add_part(self, part: Part) -> None:
        """Append the block for the next part in sequence."""
        if self._exported:
            raise RuntimeError("Manifest already exported")
        byte_range = part.range
        if byte_range.index != len(self._parts) or byte_range.start != self._next_start:
            raise ValueError(
                f"Part {byte_range.index} at {byte_range.start} is out of sequence"
            )

        self._chunks.append(
            f'<part index="{byte_range.index}">'
            f'<byte-range start="{byte_range.start}" end="{byte_range.end}"/>'
            f"<key>{part.key}</key>"
            f"<head-url>{encode_amp(part.head_url)}</head-url>"
            f"<get-url>{encode_amp(part.get_url)}</get-url>"
            f"<delete-url>{encode_amp(part.delete_url)}</delete-url>"
            "</part>"
        )
        self._parts.append(part)
        self._next_start = byte_range.end + 1

    def export(self) -> UploadManifest:
        """Close the document and return the immutable manifest."""
        if self._exported:
            raise RuntimeError("Manifest already exported")
        if self._next_start != self.size:
            raise ValueError(
                f"Parts cover {self._next_start} of {self.size} bytes"
            )

        self._chunks.append("</parts></import></manifest>")
        self._exported = True
        return UploadManifest(
            parts=tuple(self._parts),
            self_destruct_url=self.self_destruct_url,
            size=self.size,
            volume_size_gib=volume_size_gib(self.size),
            document="".join(self._chunks).encode("utf-8"),
        )
