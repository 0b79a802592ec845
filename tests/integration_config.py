"""Configuration for integration tests.

Integration tests need a PostgreSQL profile in ~/.config/sql-notebook/config.toml.
Override the profile name via environment variable:

    export SQL_NOTEBOOK_TEST_PROFILE=my_local_db
"""

import os

TEST_PROFILE = os.environ.get("SQL_NOTEBOOK_TEST_PROFILE", "test_db")

PROFILE_ARGS = ["--profile", TEST_PROFILE]
