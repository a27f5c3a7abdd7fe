"""Utilities package for cordage-tracker."""
