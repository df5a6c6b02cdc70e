"""Schemas shared between the Team Tasks server and its clients."""
