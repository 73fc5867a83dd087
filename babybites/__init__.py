"""BabyBites meal planning API."""
