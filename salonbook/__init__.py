"""Reservation and booking lifecycle engine for salon appointments."""

__version__ = "0.1.0"
