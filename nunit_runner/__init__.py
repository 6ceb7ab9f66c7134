"""Parallel NUnit console runner with retry and report aggregation."""
