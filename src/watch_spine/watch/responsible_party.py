"""Resolution of the escalation (responsible-party) channel id."""

from __future__ import annotations

import re

from watch_spine.core.errors import ValidationError
from watch_spine.core.logging import get_logger
from watch_spine.core.settings import ZERO_WIDTH
from watch_spine.store.protocol import SubjectStore

logger = get_logger(__name__)

GROUP_ID_PATTERN = re.compile(r"^C[0-9A-Za-z_-]{20,}$")
SETTING_KEY = "watch_group"


def clean_group_id(value: str | None) -> str:
    return (value or "").replace(ZERO_WIDTH, "").strip()


def is_valid_group_id(value: str | None) -> bool:
    return bool(GROUP_ID_PATTERN.match(clean_group_id(value)))


class ResponsiblePartyResolver:
    """Finds the channel escalations go to.

    A well-formed configured id wins; otherwise the id stored under the
    ``watch_group`` system setting is used. Malformed values count as absent.
    """

    def __init__(self, store: SubjectStore, configured: str | None = None):
        self.store = store
        self.configured = clean_group_id(configured)

    def resolve(self) -> str | None:
        """Return the active channel id, or None when escalation delivery is off.

        Raises:
            StoreUnavailableError: The stored setting could not be read.
        """
        if is_valid_group_id(self.configured):
            return self.configured
        if self.configured:
            logger.warning("responsible_party_configured_invalid", value=self.configured)

        stored = clean_group_id(self.store.get_setting(SETTING_KEY))
        return stored if is_valid_group_id(stored) else None

    def set_active(self, group_id: str) -> str:
        gid = clean_group_id(group_id)
        if not is_valid_group_id(gid):
            raise ValidationError("Malformed responsible-party group id", field="group_id", value=group_id)
        self.store.put_setting(SETTING_KEY, gid)
        logger.info("responsible_party_set", group_id=gid)
        return gid

    def clear(self) -> None:
        self.store.put_setting(SETTING_KEY, None)
        logger.info("responsible_party_cleared")


__all__ = [
    "GROUP_ID_PATTERN",
    "ResponsiblePartyResolver",
    "SETTING_KEY",
    "clean_group_id",
    "is_valid_group_id",
]
