"""Sentry integration for error tracking and performance monitoring.

Sentry is initialized early in main() after logging setup. Without a DSN
the SDK stays disabled and spans are no-ops.
"""

from __future__ import annotations

import os

import sentry_sdk

from sql_notebook.__about__ import __version__

SENTRY_DSN_ENV = "SQL_NOTEBOOK_SENTRY_DSN"


def setup_sentry(dsn: str | None = None, environment: str = "local") -> None:
    """Initialize Sentry, reading the DSN from the environment when not given."""
    if dsn is None:
        dsn = os.environ.get(SENTRY_DSN_ENV)
    sentry_sdk.init(
        dsn=dsn,
        traces_sample_rate=0.03,
        environment=environment,
        release=__version__,
        attach_stacktrace=True,
        send_default_pii=False,
    )
