"""CRM contact matching: registry models, persistence and the resolution engine."""
