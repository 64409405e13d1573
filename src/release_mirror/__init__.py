"""release-mirror: mirrors the latest GitHub release into a local cache and serves it over HTTP."""
