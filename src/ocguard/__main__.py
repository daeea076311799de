"""Run ``python -m ocguard`` through the exposure selected by ``OCGUARD_EXPOSE``."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

from ocguard.core.errors import ExposureConfigurationError
from ocguard.interfases.factory import resolve_exposure_from_environment

if TYPE_CHECKING:
    from collections.abc import Sequence


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Serve the selected exposure; configuration errors exit with a message."""
    try:
        exposure = resolve_exposure_from_environment()
        # The CLI exits on its own; other exposures return once stopped.
        exposure.serve(config=None if argv is None else {"argv": list(argv)})
    except ExposureConfigurationError as error:
        raise SystemExit(f"ocguard: {error}") from error
    raise SystemExit(0)


if __name__ == "__main__":  # pragma: no cover - manual execution guard
    main()
