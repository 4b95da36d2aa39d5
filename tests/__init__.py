"""Test package for credforge."""
