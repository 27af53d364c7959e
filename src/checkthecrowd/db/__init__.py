"""Database helpers for the CheckTheCrowd core."""
