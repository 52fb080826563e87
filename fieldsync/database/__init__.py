"""Database layer for fieldsync."""
