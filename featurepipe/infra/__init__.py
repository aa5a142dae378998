"""Infrastructure layer: artifact persistence, subprocesses, agent clients, console I/O."""
