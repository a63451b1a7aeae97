"""GitHub fetching and pipeline stages."""
