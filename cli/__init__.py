"""AstroCam command line interface."""
