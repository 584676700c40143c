"""Post the latest Fitbit weight measurement to Bluesky."""

__version__ = "0.1.0"
