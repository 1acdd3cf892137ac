"""SeedGraph - declarative fixture seeding with references and expressions."""

__version__ = "0.1.0"
