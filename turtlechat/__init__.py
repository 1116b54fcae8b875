"""TurtleCoin marketplace chat service."""
