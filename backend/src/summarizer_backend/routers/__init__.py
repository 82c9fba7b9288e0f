# Router modules are exported here for easier access.

from . import health, templates, workflows

__all__ = ["health", "templates", "workflows"]
