"""Environment overlay and materializer.

The supplier never mutates ``os.environ`` directly. It threads an
EnvironmentOverlay through its steps; commands run with the overlay's
contents, and the materializer persists each applied variable through the
stager so the finalize stage and the running app see the same values.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, MutableMapping
from typing import TYPE_CHECKING

from rubysupply.core.exceptions import EnvWriteError


if TYPE_CHECKING:
    from rubysupply.core.ports import StagerPort


class EnvironmentOverlay(MutableMapping[str, str]):
    """A mutable copy of an environment that later steps observe.

    Example:
        >>> env = EnvironmentOverlay({"HOME": "/home/vcap"})
        >>> env["RACK_ENV"] = "production"
        >>> env.as_dict()["RACK_ENV"]
        'production'
    """

    def __init__(self, base: Mapping[str, str] | None = None) -> None:
        """Initialize from a snapshot of ``base`` (copied, not referenced)."""
        self._values: dict[str, str] = dict(base or {})

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._values[key] = value

    def __delitem__(self, key: str) -> None:
        del self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def is_set(self, key: str) -> bool:
        """True when ``key`` is present with a non-empty value."""
        return bool(self._values.get(key))

    def as_dict(self) -> dict[str, str]:
        """Return a plain copy, suitable for ``subprocess`` ``env=``."""
        return dict(self._values)

    def with_overrides(self, **overrides: str) -> dict[str, str]:
        """Return a plain copy with ``overrides`` applied on top."""
        merged = dict(self._values)
        merged.update(overrides)
        return merged


class EnvironmentMaterializer:
    """Applies environment defaults and writes startup fragments.

    Two precedence modes are supported: "set if absent" (the default) and
    "always overwrite". Every applied variable lands both in the overlay and
    in a per-variable env file under the dependency area.
    """

    def __init__(self, env: EnvironmentOverlay, stager: StagerPort) -> None:
        self._env = env
        self._stager = stager

    @property
    def env(self) -> EnvironmentOverlay:
        """The overlay this materializer writes into."""
        return self._env

    def apply(self, defaults: Mapping[str, str], *, overwrite: bool = False) -> list[str]:
        """Apply ``defaults`` to the overlay and persist them.

        Args:
            defaults: Variable name to value.
            overwrite: When False, variables already set (non-empty) are
                left untouched; when True, every variable is replaced.

        Returns:
            Names of the variables that were applied, in input order.

        Raises:
            EnvWriteError: If an env file cannot be written.
        """
        applied: list[str] = []
        for name, value in defaults.items():
            if self._env.is_set(name) and not overwrite:
                continue
            self._env[name] = value
            try:
                self._stager.write_env_file(name, value)
            except OSError as e:
                raise EnvWriteError(name, cause=e) from e
            applied.append(name)
        return applied

    def write_fragment(self, name: str, contents: str) -> None:
        """Write one named profile.d fragment, replacing only that fragment.

        Raises:
            EnvWriteError: If the script cannot be written.
        """
        try:
            self._stager.write_profile_d(name, contents)
        except OSError as e:
            raise EnvWriteError(name, cause=e) from e
