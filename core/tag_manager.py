"""
Tags of Interest Manager for the RF Sweep Measurement System.

This module handles loading and matching the tags a sweep
measures, configured either on the command line or in a JSON file.
"""

import json
import os
from typing import List, Optional, Iterable
from dataclasses import dataclass, field

from utils.logging import get_logger


# Tags measured by the bench setup when none are configured
DEFAULT_TARGET_EPCS = [
    "E200493F3185AD7126ACF6B5",
    "E200493F38187C3126BE51F0",
]


def normalize_epc(epc: str) -> str:
    """Uppercase hex EPC without separators."""
    return epc.replace(" ", "").replace(":", "").replace("-", "").strip().upper()


@dataclass
class Tag:
    """Represents a single tag of interest."""
    epc: str
    label: str = ""

    def __post_init__(self):
        self.epc = normalize_epc(self.epc)

    def matches_epc(self, epc: str) -> bool:
        """Check if an EPC is this tag's EPC."""
        return normalize_epc(epc) == self.epc


@dataclass
class TagManager:
    """
    Manages the tags of interest.

    This class provides:
    - Loading tag lists from JSON
    - Matching EPCs to configured tags
    - Ordered access to EPCs and labels
    """

    config_file: Optional[str] = None
    tags: List[Tag] = field(default_factory=list)

    def __post_init__(self):
        """Load configuration after initialization."""
        if self.config_file:
            self.load()

    @classmethod
    def from_epcs(cls, epcs: Iterable[str]) -> "TagManager":
        """Build a manager from a list of EPCs, dropping duplicates."""
        manager = cls()
        for epc in epcs:
            manager.add_tag(epc)
        return manager

    @property
    def epcs(self) -> List[str]:
        """Get list of all tag EPCs."""
        return [t.epc for t in self.tags]

    @property
    def labels(self) -> List[str]:
        """Get list of all tag labels."""
        return [t.label for t in self.tags]

    @property
    def count(self) -> int:
        """Get number of configured tags."""
        return len(self.tags)

    def load(self) -> bool:
        """
        Load tags of interest from JSON file.

        Returns:
            True if loaded successfully

        Raises:
            ValueError: If the file exists but cannot be parsed
        """
        logger = get_logger()
        if not os.path.exists(self.config_file):
            logger.warning(f"Tag config file not found: {self.config_file}")
            return False

        try:
            with open(self.config_file, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid tag config {self.config_file}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("tags", []), list):
            raise ValueError(
                f"Invalid tag config {self.config_file}: expected {{\"tags\": [...]}}"
            )

        self.tags = []
        for entry in data.get("tags", []):
            epc, label = self._parse_entry(entry)
            if epc:
                self.add_tag(epc, label)

        logger.info(f"Loaded {len(self.tags)} tags from {self.config_file}")
        return True

    def _parse_entry(self, entry) -> tuple:
        """(epc, label) from a tag entry: an EPC string or {"epc": ..., "label": ...}."""
        if isinstance(entry, str):
            epc, label = entry, ""
        elif isinstance(entry, dict) and isinstance(entry.get("epc", ""), str):
            epc, label = entry.get("epc", ""), str(entry.get("label", ""))
        else:
            raise ValueError(f"Invalid tag entry in {self.config_file}: {entry!r}")

        epc = normalize_epc(epc)
        try:
            bytes.fromhex(epc)
        except ValueError:
            raise ValueError(f"Invalid EPC in {self.config_file}: {epc!r}") from None
        return epc, label.strip()

    def find_tag_by_epc(self, epc: str) -> Optional[Tag]:
        """Find the tag matching an EPC."""
        for tag in self.tags:
            if tag.matches_epc(epc):
                return tag
        return None

    def add_tag(self, epc: str, label: str = "") -> bool:
        """
        Add a tag of interest.

        Returns:
            True if added (False if the EPC already exists)
        """
        if self.find_tag_by_epc(epc):
            return False
        self.tags.append(Tag(epc=epc, label=label))
        return True

