"""Notarial compliance microservices."""
