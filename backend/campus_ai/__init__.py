"""CampusAI: knowledge retrieval, student tutoring and campaign targeting service."""

__version__ = "0.1.0"
