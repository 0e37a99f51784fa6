"""Language model calls for tutoring and study tools."""
