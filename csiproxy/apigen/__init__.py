"""Go type model, API group definitions, naming schemes and group discovery for API code generation."""

__version__ = "0.1.0"