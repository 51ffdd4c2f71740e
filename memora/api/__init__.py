"""HTTP layer: app factory, dependencies and resource routers."""
