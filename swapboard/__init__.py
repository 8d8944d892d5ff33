"""Swapboard: a neighborhood marketplace for trading items and services."""
