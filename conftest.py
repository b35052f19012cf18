"""Root conftest — runs before any test module imports."""

import os

# CI runners often set FORCE_COLOR=1, which makes Rich wrap CLI output and
# log records in ANSI escape codes.  The CLI tests compare generated
# Mermaid and JSON output byte for byte, so Rich's Console() must start in
# no-color mode before repochat.cli is imported.
os.environ.pop("FORCE_COLOR", None)
os.environ["NO_COLOR"] = "1"
