"""
debpack - Debian 二进制软件包构建工具

Builds Debian binary packages (.deb) from a YAML build description.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .config.schema import PackageConfig
from .build.builder import Builder

__all__ = ["PackageConfig", "Builder", "__version__"]
