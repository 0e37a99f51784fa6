"""Per-student context assembled from enrollment and grade records."""
