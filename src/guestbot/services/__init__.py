"""Business logic services for GuestBot."""
