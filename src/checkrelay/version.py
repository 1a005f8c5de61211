"""
Build information reported by /about and `checkrelay version`.

Build fields are stamped into the image as CHECKRELAY_BUILD_* variables.
"""

import os
import platform
from typing import Dict

from . import __version__

_TEMPLATE = """\
checkrelay, version {Version} (branch: {Branch}, revision: {Revision})
  build user:       {BuildUser}
  build date:       {BuildDate}
  python version:   {PythonVersion}"""


def get_info() -> Dict[str, str]:
    """Version and build metadata."""
    return {
        "Version": __version__,
        "Revision": os.getenv("CHECKRELAY_BUILD_REVISION", ""),
        "Branch": os.getenv("CHECKRELAY_BUILD_BRANCH", ""),
        "BuildUser": os.getenv("CHECKRELAY_BUILD_USER", ""),
        "BuildDate": os.getenv("CHECKRELAY_BUILD_DATE", ""),
        "PythonVersion": platform.python_version(),
    }


def format_info() -> str:
    return _TEMPLATE.format(**get_info())
