from nfc_card.models.profile import Profile
from nfc_card.models.theme import Theme
from nfc_card.models.link_click import LinkClick

__all__ = [
    "Profile",
    "Theme",
    "LinkClick",
]
