"""Console API routers."""
