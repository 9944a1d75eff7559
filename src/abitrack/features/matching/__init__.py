"""Cross-version object identity matching."""

from .domain.object_names import short_name, soname_version, super_short_name
from .usecases.identity_resolver import (
    ObjectIdentityResolver,
    ObjectMapping,
    SonameChange,
)

__all__ = [
    "ObjectIdentityResolver",
    "ObjectMapping",
    "SonameChange",
    "short_name",
    "soname_version",
    "super_short_name",
]
