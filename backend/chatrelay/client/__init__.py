"""Client SDK — consumes the chat frame stream and reconstructs artifact state."""
