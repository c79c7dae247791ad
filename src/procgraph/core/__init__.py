"""Core parsing infrastructure: configuration, logging, references, schemas and the DAG."""
