"""Appointment scheduling and booking validation engine."""
