"""Value coercion and the per-field / per-row pipeline."""
