"""Environment and logging helpers."""
