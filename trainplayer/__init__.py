"""TrainPlayer - Interactive training delivery engine."""

__version__ = "0.1.0"
