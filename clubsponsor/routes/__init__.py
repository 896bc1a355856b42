"""JSON API blueprints (registered by the app factory)."""
