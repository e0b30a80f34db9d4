"""HTTP blueprints: auth, proposals, users."""
