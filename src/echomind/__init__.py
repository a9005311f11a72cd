"""Plain-language reminders for the EchoMind voice assistant."""
