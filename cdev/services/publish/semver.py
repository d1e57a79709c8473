"""``MAJOR.MINOR.PATCH`` versions as used in package.json, dev branches and release tags.

Prerelease and build suffixes are not part of the flow: ``parse_version``
rejects them, so such refs never take part in version decisions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from cdev.services.publish.model import BumpKind

_PART = r"(0|[1-9]\d*)"
_VERSION_RE = re.compile(rf"{_PART}\.{_PART}\.{_PART}")


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def bump(self, kind: BumpKind) -> SemVer:
        """Next version; lower components reset to zero."""
        match kind:
            case "patch":
                return replace(self, patch=self.patch + 1)
            case "minor":
                return replace(self, minor=self.minor + 1, patch=0)
            case "major":
                return SemVer(self.major + 1, 0, 0)


def parse_version(text: str) -> SemVer | None:
    m = _VERSION_RE.fullmatch(text.strip())
    if m is None:
        return None
    major, minor, patch = (int(g) for g in m.groups())
    return SemVer(major, minor, patch)
