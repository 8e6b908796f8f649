"""Read-only progress snapshot for the chat assistant."""
