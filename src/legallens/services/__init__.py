"""Application services wiring analysis, storage and chat together."""
