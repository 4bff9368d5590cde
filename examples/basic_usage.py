"""Basic supply run example.

This example shows the simplest usage pattern: validate the four staging
directories, wire a Supplier to the default adapters and run every step.
The platform normally does this through the ``rubysupply supply`` command.
"""

import os
from pathlib import Path

from rubysupply import RichBuildLogger, Supplier, load_config


# Validate the directories the platform hands to the supply phase
# The manifest is found via --manifest, $BUILDPACK_DIR or the nearest manifest.yml
config = load_config(
    build_dir=Path("/tmp/app"),
    cache_dir=Path("/tmp/cache"),
    deps_dir=Path("/tmp/deps"),
    deps_idx="0",
)

# Factory method wires ManifestCatalog, RouterStorage, FileCache and Stager
log = RichBuildLogger(debug=bool(os.environ.get("BP_DEBUG")))
supplier = Supplier.from_config(config, log=log)

# Runs the pipeline in order and returns the final state
state = supplier.run()
print(f"Ruby {state.runtime.version} installed into {supplier.dep_dir}")
print(f"Bundler {state.bundler.active_version} is active")
