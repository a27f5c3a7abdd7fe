"""Cordage Tracker - inventory and order-fulfillment core for a cordage producer."""

__version__ = "0.1.0"
