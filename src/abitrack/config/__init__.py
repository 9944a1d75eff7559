"""Configuration: persisted TOML settings, path policy and library profiles."""
