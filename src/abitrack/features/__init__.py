"""Feature packages: artifact store, object matching, scoring and the build pipeline."""
