"""Core building blocks: configuration, storage, command execution, logging."""
