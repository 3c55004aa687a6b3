"""chatrelay: streaming chat relay with reasoning extraction."""
