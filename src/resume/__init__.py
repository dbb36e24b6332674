"""Save/resume actions and the command-line client."""
