"""Client-facing façade and HTTP surface for fieldsync."""
