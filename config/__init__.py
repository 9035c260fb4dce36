"""CRM matching engine configuration."""
