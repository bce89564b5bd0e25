"""HTTP surface: blueprints, bearer-token decorators and problem-details error handlers."""
