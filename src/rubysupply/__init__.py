"""rubysupply - the supply stage of a Ruby buildpack.

Resolves and installs Ruby (MRI or JRuby), Bundler, FreeTDS, a JVM, Node.js
and Yarn into a dependency area, restores and saves the application cache,
runs ``bundle install`` and writes the environment later stages need.

Example:
    >>> from pathlib import Path
    >>> from rubysupply import Supplier, load_config
    >>> config = load_config(
    ...     Path("/tmp/app"), Path("/tmp/cache"), Path("/tmp/deps"), "0"
    ... )
    >>> state = Supplier.from_config(config).run()
"""

from rubysupply.adapters.cache import FileCache
from rubysupply.adapters.catalog import ManifestCatalog
from rubysupply.adapters.log import RichBuildLogger
from rubysupply.adapters.storage import (
    FilesystemStorage,
    HttpStorage,
    RouterStorage,
    S3Storage,
    create_router,
)
from rubysupply.config import SupplyConfig, find_buildpack_root, load_config
from rubysupply.core.exceptions import (
    CacheCorruptError,
    CacheIOError,
    CommandError,
    CompatibilityCheckError,
    ConfigurationError,
    EnvWriteError,
    InstallError,
    ResolutionError,
    RubySupplyError,
    StorageError,
    SupplyStepError,
    UnsupportedEngineError,
)
from rubysupply.core.fingerprint import compute_fingerprint
from rubysupply.core.models import Dependency, RubyEngine, SupplyState
from rubysupply.core.ports import BuildLogger, NullBuildLogger
from rubysupply.core.services import Supplier
from rubysupply.core.versions import find_matching_version


__version__ = "0.1.0"

__all__ = [
    "BuildLogger",
    "CacheCorruptError",
    "CacheIOError",
    "CommandError",
    "CompatibilityCheckError",
    "ConfigurationError",
    "Dependency",
    "EnvWriteError",
    "FileCache",
    "FilesystemStorage",
    "HttpStorage",
    "InstallError",
    "ManifestCatalog",
    "NullBuildLogger",
    "ResolutionError",
    "RichBuildLogger",
    "RouterStorage",
    "RubyEngine",
    "RubySupplyError",
    "S3Storage",
    "StorageError",
    "SupplyConfig",
    "SupplyState",
    "SupplyStepError",
    "Supplier",
    "UnsupportedEngineError",
    "__version__",
    "compute_fingerprint",
    "create_router",
    "find_buildpack_root",
    "find_matching_version",
    "load_config",
]
