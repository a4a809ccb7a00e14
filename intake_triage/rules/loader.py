"""YAML ruleset loader with integrity verification."""

import hashlib
from pathlib import Path
from typing import Any

import yaml

from intake_triage.core.config import RULESETS_DIR


def compute_ruleset_hash(content: str) -> str:
    """Compute SHA256 hash of ruleset content.

    Used for audit trail to ensure ruleset hasn't been modified.

    Args:
        content: Raw YAML content string

    Returns:
        SHA256 hex digest
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def load_yaml_file(filepath: Path) -> tuple[dict[str, Any], str]:
    """Read a YAML document and hash its raw text.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If the document is not a mapping
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Ruleset not found: {filepath}")

    content = filepath.read_text(encoding="utf-8")
    document = yaml.safe_load(content)
    if not isinstance(document, dict):
        raise ValueError(f"Expected a mapping at top level of {filepath}")

    return document, compute_ruleset_hash(content)


def load_ruleset(
    filename: str,
    rulesets_dir: Path | None = None,
) -> tuple[dict[str, Any], str]:
    """Load a ruleset YAML file and compute its hash.

    Args:
        filename: Name of the ruleset file (e.g., "flag-rules-v1.0.0.yaml")
        rulesets_dir: Directory containing rulesets (defaults to packaged rulesets)

    Returns:
        Tuple of (parsed ruleset dict, SHA256 hash)
    """
    return load_yaml_file((rulesets_dir or RULESETS_DIR) / filename)


class RulesetLoader:
    """Stateful ruleset loader with caching."""

    def __init__(self, rulesets_dir: Path | None = None) -> None:
        self.rulesets_dir = rulesets_dir or RULESETS_DIR
        self._cache: dict[str, tuple[dict[str, Any], str]] = {}

    def load(self, filename: str, use_cache: bool = True) -> tuple[dict[str, Any], str]:
        """Load a ruleset with optional caching.

        Returns:
            Tuple of (ruleset dict, hash)
        """
        if use_cache and filename in self._cache:
            return self._cache[filename]

        ruleset, ruleset_hash = load_ruleset(filename, self.rulesets_dir)
        self._cache[filename] = (ruleset, ruleset_hash)

        return ruleset, ruleset_hash

    def clear_cache(self) -> None:
        """Clear the ruleset cache."""
        self._cache.clear()

    def list_rulesets(self) -> list[str]:
        """List available ruleset files."""
        return sorted(f.name for f in self.rulesets_dir.glob("*.yaml"))
