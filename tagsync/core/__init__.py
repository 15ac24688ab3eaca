"""Tag language and the load/query/apply workflows."""
