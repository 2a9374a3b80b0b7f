"""Flask REST API for the budget calendar."""
