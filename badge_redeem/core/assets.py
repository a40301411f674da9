from enum import Enum
from typing import Optional


class AssetCategory(str, Enum):
    """Upload folders the API serves images from"""
    BADGES = "badges"
    ISSUERS = "issuers"


def build_asset_url(api_base_url: str, path: Optional[str], category: AssetCategory) -> Optional[str]:
    """
    Resolve a stored image path to a URL the browser (or anyone) can fetch.

    Absolute URLs are returned untouched; anything else is reduced to its
    filename and served from {api_base_url}/uploads/{category}/.
    """
    if not path:
        return None
    if path.startswith("http"):
        return path
    filename = path.replace("\\", "/").split("/")[-1]
    return f"{api_base_url.rstrip('/')}/uploads/{AssetCategory(category).value}/{filename}"
