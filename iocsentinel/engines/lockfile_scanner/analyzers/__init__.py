"""Format analyzers: auto-registered on import."""

from iocsentinel.engines.lockfile_scanner.analyzers import (
    package_json,  # noqa: F401
    npm_lock,  # noqa: F401
    pnpm_lock,  # noqa: F401
    yarn_lock,  # noqa: F401
    deno_config,  # noqa: F401
    deno_lock,  # noqa: F401
    bun_lock,  # noqa: F401
)
