"""Console entry point for the budget calendar."""
