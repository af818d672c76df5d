"""Schema node model, normalization and JSON Schema export."""
