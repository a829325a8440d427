"""Small helpers shared by the models and the workflow service."""
