# storage/profile_store.py
import json
import logging
from pathlib import Path
from typing import Optional, Tuple

from pydantic import ValidationError

from expense_report.config import settings
from expense_report.core.schema import BankDetails, ReporterProfile

logger = logging.getLogger(__name__)


class ProfileStore:
    """'Remember me' snapshot of the reporter profile and bank details, kept as JSON on disk."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or settings.profile_store_path)

    def load(self) -> Tuple[Optional[ReporterProfile], Optional[BankDetails]]:
        if not self.path.exists():
            return None, None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            profile = ReporterProfile(**raw["profile"])
            bank = BankDetails(**raw["bank"]) if raw.get("bank") else None
        except (OSError, ValueError, KeyError, TypeError, ValidationError) as e:
            logger.warning("Ignoring unreadable profile snapshot %s: %s", self.path, e)
            return None, None
        return profile, bank

    def save(self, profile: ReporterProfile, bank: Optional[BankDetails] = None) -> bool:
        """Persists the snapshot. Incomplete profiles are not saved."""
        if not profile.is_valid:
            logger.debug("Profile incomplete, snapshot not saved")
            return False
        snapshot = {
            "profile": profile.model_dump(),
            "bank": bank.model_dump() if bank is not None else None,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(snapshot, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Saved profile snapshot to %s", self.path)
        return True

    def clear(self):
        if self.path.exists():
            self.path.unlink()
            logger.info("Removed profile snapshot %s", self.path)
