"""
Pixel-tracking configuration embedded in a gate.

Facebook and TikTok receive server-side conversion events; Google tags are
loaded in the browser only and never receive a server-side call.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PixelPlatform(str, Enum):
    FACEBOOK = "facebook"
    GOOGLE = "google"
    TIKTOK = "tiktok"


class PixelEvent(str, Enum):
    PAGE_VIEW = "page_view"
    LEAD = "lead"
    CONVERSION = "conversion"


# Platform-specific standard event names.
EVENT_NAMES: dict[PixelEvent, dict[PixelPlatform, str]] = {
    PixelEvent.PAGE_VIEW: {
        PixelPlatform.FACEBOOK: "PageView",
        PixelPlatform.GOOGLE: "page_view",
        PixelPlatform.TIKTOK: "ViewContent",
    },
    PixelEvent.LEAD: {
        PixelPlatform.FACEBOOK: "Lead",
        PixelPlatform.GOOGLE: "generate_lead",
        PixelPlatform.TIKTOK: "SubmitForm",
    },
    PixelEvent.CONVERSION: {
        PixelPlatform.FACEBOOK: "CompleteRegistration",
        PixelPlatform.GOOGLE: "conversion",
        PixelPlatform.TIKTOK: "CompleteRegistration",
    },
}


def event_name(event: PixelEvent, platform: PixelPlatform) -> str:
    return EVENT_NAMES[event][platform]


class FacebookPixel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    pixel_id: str
    access_token: Optional[str] = None


class GoogleTag(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    tag_id: str
    conversion_labels: dict[str, str] = Field(default_factory=dict)


class TikTokPixel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    pixel_id: str
    access_token: Optional[str] = None


class PixelConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    facebook: Optional[FacebookPixel] = None
    google: Optional[GoogleTag] = None
    tiktok: Optional[TikTokPixel] = None

    def enabled_platforms(self) -> list[PixelPlatform]:
        platforms: list[PixelPlatform] = []
        if self.facebook and self.facebook.enabled:
            platforms.append(PixelPlatform.FACEBOOK)
        if self.google and self.google.enabled:
            platforms.append(PixelPlatform.GOOGLE)
        if self.tiktok and self.tiktok.enabled:
            platforms.append(PixelPlatform.TIKTOK)
        return platforms
