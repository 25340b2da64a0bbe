"""Configuration and the run data model shared by every engine component."""
