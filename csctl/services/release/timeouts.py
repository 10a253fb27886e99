from __future__ import annotations

# Registry operations (gh / oras)
REGISTRY_TIMEOUT_SECONDS = 60.0
REGISTRY_TRANSFER_TIMEOUT_SECONDS = 15 * 60.0

# Local packaging (helm package)
PACKAGE_TIMEOUT_SECONDS = 5 * 60.0

# Provider plugins build machine images and may run for a long time
PLUGIN_TIMEOUT_SECONDS = 4 * 60 * 60.0
