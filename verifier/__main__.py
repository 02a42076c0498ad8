"""Run the verifier terminal API: ``python -m verifier``."""
from __future__ import annotations

import uvicorn

from .config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "verifier.main:build_default_app",
        factory=True,
        host=settings.terminal_host,
        port=settings.terminal_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
