"""HTTP surface for GuestBot."""
