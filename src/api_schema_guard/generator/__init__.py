"""OpenAPI document assembly and route module loading."""
