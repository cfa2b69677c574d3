"""
Override Service - loads the step override document and applies it to live steps
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from loguru import logger

from ...core.config import ConfigLoader
from ...core.exceptions import ConfigError
from ...core.overrides.override_resolver import find_step_override, apply_field_overrides


class StepOverrideService:
    """
    Read-only access to the override document

    The document is cached per path and re-read only when the file's
    modification time changes. Missing, empty or unreadable documents mean
    "no overrides".
    """

    def __init__(self, overrides_path: Path, config_loader: Optional[ConfigLoader] = None):
        self.overrides_path = Path(overrides_path)
        self.config_loader = config_loader or ConfigLoader()
        self.logger = logger
        self._cache: Optional[Tuple[float, Optional[Dict[str, Any]]]] = None

    async def load_document(self) -> Optional[Dict[str, Any]]:
        """Current override document, or None when there is nothing usable"""
        try:
            mtime = self.overrides_path.stat().st_mtime
        except OSError:
            self._cache = None
            return None

        if self._cache and self._cache[0] == mtime:
            return self._cache[1]

        try:
            document = await self.config_loader.load_yaml(self.overrides_path)
        except ConfigError as e:
            self.logger.debug(f"Step overrides config load failed: path={self.overrides_path} message={e}")
            document = None

        if not isinstance(document, dict):
            document = None

        self._cache = (mtime, document)
        return document

    async def apply(self, step: Any) -> Any:
        """Step with its configured field overrides merged in"""
        if not isinstance(step, dict):
            return step

        document = await self.load_document()
        if not document:
            return step

        step_override = find_step_override(step, document)
        if not step_override:
            return step

        merged = apply_field_overrides(step, step_override)
        original_count = len(step.get("fields") or [])
        final_count = len(merged.get("fields") or [])
        self.logger.debug(
            f"Step field overrides applied: journeyStep={step.get('journeyStep')} "
            f"originalFieldCount={original_count} finalFieldCount={final_count}"
        )
        return merged
