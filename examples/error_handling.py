"""Error handling patterns with recovery hints.

This example demonstrates how to handle common errors and use
the recovery_hint property to provide actionable guidance.
"""

from pathlib import Path

from rubysupply import (
    ConfigurationError,
    ManifestCatalog,
    ResolutionError,
    RubySupplyError,
    Supplier,
    SupplyStepError,
    find_matching_version,
    load_config,
)


# Pattern 1: Resolve a version from the manifest, reporting what is available
def resolve_ruby(catalog: ManifestCatalog, constraint: str) -> str | None:
    """Resolve a Ruby constraint with a helpful error message."""
    try:
        return find_matching_version(
            constraint, catalog.all_versions("ruby"), name="ruby"
        )
    except ResolutionError as e:
        # recovery_hint lists the candidate versions
        print(f"No ruby matches '{e.constraint}'")
        print(f"Hint: {e.recovery_hint}")
        return None


# Pattern 2: Report which pipeline step failed
def supply(build_dir: Path) -> bool:
    """Run supply, printing the failing step and its hint."""
    try:
        config = load_config(build_dir, Path("/tmp/cache"), Path("/tmp/deps"), "0")
        Supplier.from_config(config).run()
    except ConfigurationError as e:
        print(f"Bad arguments: {e}")
        if e.recovery_hint:
            print(f"Hint: {e.recovery_hint}")
        return False
    except SupplyStepError as e:
        # The hint comes from the underlying cause
        print(f"Step '{e.step}' failed: {e.cause}")
        if e.recovery_hint:
            print(f"Hint: {e.recovery_hint}")
        return False
    except RubySupplyError as e:
        print(f"Error: {e}")
        return False
    return True


if __name__ == "__main__":
    supply(Path("/tmp/app"))
