"""Core models and errors shared by the engine, simulation and weights packages."""
