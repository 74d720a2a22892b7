import re
from typing import NamedTuple


class VersionInfo(NamedTuple):
    major: int
    minor: int
    micro: int
    releaselevel: str
    serial: str


class Version:
    _version: str

    info: VersionInfo

    def __init__(self, version: str, version_info: VersionInfo = None) -> None:
        self._version = version
        if version_info is None:
            version_info = Version.from_str(self._version).info
        self.info = version_info

    @classmethod
    def from_str(cls, version: str) -> "Version":
        """Parse a version string such as ``4.14.3`` or ``4.15.0-rc.2``."""
        _match = re.match(r"^v?(\d+)\.(\d+)\.(\d+)(.+)?$", (version or "").strip())
        if _match is None:
            raise ValueError(f"Invalid version {version!r}, expected major.minor.patch")
        _temp = _match.groups()
        _version_info = VersionInfo(
            int(_temp[0]), int(_temp[1]), int(_temp[2]), _temp[3] or "", ""
        )
        return Version(version, _version_info)

    @property
    def major_minor(self) -> str:
        return f"{self.info.major}.{self.info.minor}"

    def __str__(self):
        return self._version

    def __repr__(self):
        return f"Version<{self._version}>"
