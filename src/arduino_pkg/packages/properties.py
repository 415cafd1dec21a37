"""Descriptor (``library.properties``) codec.

Descriptors are line-oriented ``key=value`` files. Each line containing an
``=`` is split at the first ``=`` and both sides are trimmed; every other
line is ignored. There is no comment syntax and no escaping.

Recognized keys:
    name, version, author, maintainer, sentence (description),
    url (website), repository, license

Anything else (including ``paragraph``, ``category`` and
``architectures``) is ignored on read. The writer always emits the full
set of keys expected by Arduino tooling.
"""

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Optional, Union

from .package import PackageRecord

logger = logging.getLogger(__name__)

# Descriptor key -> PackageRecord field
_FIELD_BY_KEY = {
    "name": "name",
    "version": "version",
    "author": "author",
    "maintainer": "maintainer",
    "sentence": "description",
    "url": "website",
    "repository": "repository",
    "license": "license",
}


def parse_properties(data: Union[bytes, str]) -> Optional[PackageRecord]:
    """Parse descriptor content into a record.

    ``install_dir`` is never set here; callers that read from disk set it
    to the descriptor's parent directory.

    Args:
        data: Raw descriptor bytes or decoded text

    Returns:
        PackageRecord, or None if no non-empty ``name`` key was present
    """
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data

    values: dict[str, str] = {}
    for line in text.splitlines():
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        field_name = _FIELD_BY_KEY.get(key.strip())
        if field_name is not None:
            values[field_name] = value.strip()

    if not values.get("name"):
        return None
    return PackageRecord(**values)


def _single_line(value: str) -> str:
    # A newline inside a value would start a new key=value line
    return " ".join(value.splitlines()).strip()


def serialize_properties(record: PackageRecord) -> bytes:
    """Serialize a record to descriptor bytes.

    ``paragraph`` duplicates ``sentence`` and ``architectures`` is always
    ``*``; both exist for compatibility with Arduino tooling.

    Args:
        record: Record to serialize

    Returns:
        UTF-8 encoded descriptor with a trailing newline
    """
    description = _single_line(record.description)
    lines = [
        f"name={_single_line(record.name)}",
        f"version={_single_line(record.version)}",
        f"author={_single_line(record.author)}",
        f"maintainer={_single_line(record.maintainer)}",
        f"sentence={description}",
        f"paragraph={description}",
        f"category={_single_line(record.category)}",
        f"url={_single_line(record.website)}",
        "architectures=*",
        f"repository={_single_line(record.repository)}",
        f"license={_single_line(record.license)}",
    ]
    return ("\n".join(lines) + "\n").encode("utf-8")


def load_properties_file(path: Path) -> Optional[PackageRecord]:
    """Read a descriptor file and attach its parent as ``install_dir``.

    Args:
        path: Path to the descriptor file

    Returns:
        PackageRecord, or None if the descriptor declares no name

    Raises:
        OSError: If the file cannot be read
    """
    record = parse_properties(path.read_bytes())
    if record is None:
        logger.debug(f"Descriptor without a name: {path}")
        return None

    return replace(record, install_dir=path.parent.resolve())


def write_properties_file(path: Path, record: PackageRecord) -> None:
    """Write a descriptor file atomically (temp file + rename).

    Args:
        path: Destination descriptor path
        record: Record to serialize

    Raises:
        OSError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_file = path.with_name(path.name + ".tmp")
    try:
        temp_file.write_bytes(serialize_properties(record))
        os.replace(temp_file, path)
    except OSError:
        try:
            temp_file.unlink()
        except OSError:
            pass
        raise
    logger.debug(f"Wrote descriptor {path}")
