"""Collaborator contracts, default implementations and the response contract."""
