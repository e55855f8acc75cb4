"""Command line interface for the chromatic tuner."""
