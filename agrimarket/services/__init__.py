"""Dashboard, widget and assistant chat services."""
