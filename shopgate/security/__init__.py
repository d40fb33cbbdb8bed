"""Authentication, authorization and at-rest encryption."""
