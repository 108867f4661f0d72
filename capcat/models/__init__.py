"""Core data models for capcat."""
