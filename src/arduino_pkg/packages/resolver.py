"""Metadata resolver for libraries that are not installed.

Resolution runs an ordered list of stages. Each stage either returns a
record or returns None ("inconclusive"), and the resolver moves on to the
next stage only in the latter case. The final stage always produces a
record, so ``resolve`` never fails.

Default chain:
    1. RemoteLookupStage - repository search, then latest release (or the
       newest tag when there is no release), category from topics
    2. StaticCatalogStage - curated metadata for well-known names
    3. DefaultRecordStage - synthesized generic record (version 2.0.0)
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Optional, Protocol, Sequence

from .catalog import (
    DEFAULT_ARCHITECTURES,
    DEFAULT_TYPES,
    category_for_topics,
    default_library,
    lookup_static,
)
from .github_api import GitHubClient, RequestCancelledError
from .package import NetworkError, PackageRecord, ParseError

logger = logging.getLogger(__name__)


class ResolverStage(Protocol):
    """One step of the fallback chain."""

    name: str

    def run(self, package_name: str, cancel_event: Optional[threading.Event] = None) -> Optional[PackageRecord]:
        """Return a record, or None to defer to the next stage."""
        ...


@dataclass
class Resolution:
    """Resolved record and the stage that produced it."""

    record: PackageRecord
    stage: str


class RemoteLookupStage:
    """Look the library up on GitHub."""

    name = "remote"

    def __init__(self, client: GitHubClient, toolkit: str = "Arduino"):
        self.client = client
        self.toolkit = toolkit

    def run(self, package_name: str, cancel_event: Optional[threading.Event] = None) -> Optional[PackageRecord]:
        try:
            repositories = self.client.search_repositories(package_name, toolkit=self.toolkit, cancel_event=cancel_event)
            if not repositories:
                logger.debug(f"No repositories found for {package_name}")
                return None

            top = repositories[0]
            release = self.client.get_latest_release(top.owner, top.repo, cancel_event=cancel_event)
        except RequestCancelledError:
            logger.info(f"Remote lookup for {package_name} cancelled")
            return None
        except (NetworkError, ParseError) as e:
            logger.warning(f"Remote lookup for {package_name} failed: {e}")
            return None

        repo_url = f"https://github.com/{top.owner}/{top.repo}"
        return PackageRecord(
            name=package_name,
            version=release.tag_name,
            author=top.owner,
            maintainer=top.owner,
            description=top.description,
            website=repo_url,
            repository=repo_url,
            category=category_for_topics(top.topics),
            architectures=DEFAULT_ARCHITECTURES,
            types=DEFAULT_TYPES,
            license=top.license_spdx,
        )


class StaticCatalogStage:
    """Curated metadata for well-known libraries."""

    name = "catalog"

    def run(self, package_name: str, cancel_event: Optional[threading.Event] = None) -> Optional[PackageRecord]:
        return lookup_static(package_name)


class DefaultRecordStage:
    """Generic record for names nothing else knows about."""

    name = "default"

    def __init__(self, toolkit: str = "Arduino"):
        self.toolkit = toolkit

    def run(self, package_name: str, cancel_event: Optional[threading.Event] = None) -> PackageRecord:
        return default_library(package_name, toolkit=self.toolkit)


class MetadataResolver:
    """Runs the stage chain for a package name."""

    def __init__(self, stages: Sequence[ResolverStage], toolkit: str = "Arduino"):
        """Initialize the resolver.

        Args:
            stages: Stages tried in order before the default record
            toolkit: Toolkit word used by the default record
        """
        self.stages = list(stages)
        self.fallback = DefaultRecordStage(toolkit=toolkit)

    @classmethod
    def with_defaults(cls, client: GitHubClient, toolkit: str = "Arduino") -> "MetadataResolver":
        """Standard chain: remote lookup, then static catalog."""
        return cls([RemoteLookupStage(client, toolkit=toolkit), StaticCatalogStage()], toolkit=toolkit)

    def resolve(self, package_name: str, cancel_event: Optional[threading.Event] = None) -> PackageRecord:
        """Resolve metadata for ``package_name``; never fails."""
        return self.resolve_detailed(package_name, cancel_event=cancel_event).record

    def resolve_detailed(self, package_name: str, cancel_event: Optional[threading.Event] = None) -> Resolution:
        """Resolve metadata and report which stage answered.

        Args:
            package_name: Library name as requested
            cancel_event: Cancels in-flight network stages; static stages
                still run so a record is always produced

        Returns:
            Resolution with the record and stage name
        """
        for stage in self.stages:
            try:
                record = stage.run(package_name, cancel_event=cancel_event)
            except KeyboardInterrupt:
                raise
            except Exception as e:
                logger.warning(f"Resolver stage {stage.name!r} failed for {package_name}: {e}")
                continue

            if record is not None:
                logger.debug(f"Resolved {package_name} via {stage.name}")
                return Resolution(record=record, stage=stage.name)

        logger.debug(f"Resolved {package_name} via {self.fallback.name}")
        return Resolution(record=self.fallback.run(package_name), stage=self.fallback.name)


def with_name(record: PackageRecord, package_name: str) -> PackageRecord:
    """Copy of ``record`` keyed by the requested name."""
    return record if record.name == package_name else replace(record, name=package_name)
