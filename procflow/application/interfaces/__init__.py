"""Application ports: repository and service protocols."""
