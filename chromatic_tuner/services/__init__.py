"""Audio capture and the tuner tick loop."""
