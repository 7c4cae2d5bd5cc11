"""Run the stock ledger API under uvicorn (`python -m stockdb.serve`)."""

import os
from typing import Dict

import uvicorn

from stockdb.config import Settings

_SSL_ENV = (
    ("SSL_CERTFILE", "ssl_certfile"),
    ("SSL_KEYFILE", "ssl_keyfile"),
)


def _ssl_options() -> Dict[str, str]:
    options: Dict[str, str] = {}
    for env_name, option in _SSL_ENV:
        value = os.getenv(env_name)
        if value:
            options[option] = value
    return options


def main() -> None:
    settings = Settings.from_env()
    reload_enabled = os.getenv("RELOAD", "false").lower() in {"1", "true", "yes", "on"}

    # create_app reads Settings.from_env() again inside the worker.
    uvicorn.run(
        "stockdb.main:create_app",
        factory=True,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=reload_enabled,
        log_level=settings.log_level.lower(),
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1"),
        **_ssl_options(),
    )


if __name__ == "__main__":
    main()
