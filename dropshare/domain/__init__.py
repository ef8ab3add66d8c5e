"""Domain models for connections, groups, drops and invitations."""
