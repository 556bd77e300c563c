"""Request middleware: gateway sessions and CORS."""
