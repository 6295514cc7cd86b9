"""
Cookie consent data models.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

ANONYMOUS_USER_ID = "anonymous"


class CookieCategory(str, Enum):
    """Named class of behavior gated by consent."""
    ESSENTIAL = "essential"
    ANALYTICS = "analytics"
    PREFERENCES = "preferences"


class ConsentState(str, Enum):
    """How consent was given. ``None`` stands for "no decision yet"."""
    ALL = "all"
    ESSENTIAL = "essential"
    CUSTOM = "custom"


class CookieSettings(BaseModel):
    """
    Consent record.

    ``essential`` is forced to True on every construction path, so no
    record can ever carry ``essential=False``.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    essential: bool = Field(default=True, description="Cookies required for basic operation")
    analytics: bool = Field(default=False, description="Usage tracking permitted")
    preferences: bool = Field(default=False, description="Personalization cookies permitted")
    user_id: Optional[str] = Field(default=None, alias="userId", description="Subject the record belongs to")
    timestamp: Optional[int] = Field(default=None, description="Write time in epoch milliseconds")

    @field_validator('essential', mode='after')
    @classmethod
    def force_essential(cls, v):
        """Essential cookies cannot be disabled."""
        return True

    def is_granted(self, category: CookieCategory) -> bool:
        """Return the flag for ``category``."""
        return bool(getattr(self, CookieCategory(category).value))

    def toggled(self, category: CookieCategory) -> "CookieSettings":
        """
        Return a copy with ``category`` flipped.

        Toggling ``essential`` returns the settings unchanged.
        """
        category = CookieCategory(category)
        if category is CookieCategory.ESSENTIAL:
            return self
        return self.model_copy(update={category.value: not self.is_granted(category)})

    def same_choices(self, other: "CookieSettings") -> bool:
        """Compare the category flags and subject, ignoring the timestamp."""
        return (
            self.essential == other.essential
            and self.analytics == other.analytics
            and self.preferences == other.preferences
            and self.user_id == other.user_id
        )

    def to_json_dict(self, include_identity: bool = True) -> dict:
        """Serialize with camelCase wire names."""
        exclude = None if include_identity else {'user_id', 'timestamp'}
        return self.model_dump(by_alias=True, exclude_none=True, exclude=exclude)


def default_settings() -> CookieSettings:
    """Settings in effect before any decision is made."""
    return CookieSettings(essential=True, analytics=False, preferences=False)


def settings_for(consent: ConsentState, custom: Optional[CookieSettings] = None) -> CookieSettings:
    """
    Build the full settings for a consent action.

    Args:
        consent: The action taken (accept all, reject all, customize)
        custom: Customized flags, required for ``ConsentState.CUSTOM``

    Returns:
        CookieSettings with ``essential`` set
    """
    consent = ConsentState(consent)
    if consent is ConsentState.ALL:
        return CookieSettings(essential=True, analytics=True, preferences=True)
    if consent is ConsentState.ESSENTIAL:
        return default_settings()
    if custom is None:
        raise ValueError("Custom consent requires explicit settings")
    return CookieSettings(essential=True, analytics=custom.analytics, preferences=custom.preferences)


class CookieSettingsPayload(BaseModel):
    """
    Body of a save request.

    All three category flags must be JSON booleans and ``userId`` a
    non-empty string. A caller-supplied ``timestamp`` is accepted and
    ignored; the store stamps its own.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    essential: StrictBool
    analytics: StrictBool
    preferences: StrictBool
    user_id: str = Field(..., alias="userId", min_length=1)
    timestamp: Optional[Any] = Field(default=None, exclude=True)

    @field_validator('user_id', mode='before')
    @classmethod
    def require_string_user_id(cls, v):
        """Reject non-string identifiers instead of coercing them."""
        if not isinstance(v, str):
            raise ValueError("userId must be a string")
        return v

    def to_settings(self, timestamp: int) -> CookieSettings:
        """Build the stored record, stamped with ``timestamp``."""
        return CookieSettings(
            essential=True,
            analytics=self.analytics,
            preferences=self.preferences,
            user_id=self.user_id,
            timestamp=timestamp
        )


class CookieResponse(BaseModel):
    """Single-record or acknowledgement response."""
    success: bool
    message: Optional[str] = None
    data: Optional[CookieSettings] = None


class CookieListResponse(BaseModel):
    """Response of the list endpoint."""
    success: bool = True
    data: List[CookieSettings] = Field(default_factory=list)
