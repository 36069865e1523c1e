"""Manufacturing node manager: a JSON-file backed store and interactive shell."""
