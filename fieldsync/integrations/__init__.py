"""External integrations for fieldsync."""
