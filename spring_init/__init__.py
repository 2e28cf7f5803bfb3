"""spring-init: create Spring Boot projects with AI-selected dependencies."""

__version__ = "0.1.0"
