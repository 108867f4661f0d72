"""Ranking — score catalog items against a consuming project's needs."""
